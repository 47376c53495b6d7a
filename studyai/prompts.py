"""Prompt templates for the study assistant operations.

This module contains the instruction text sent to generation backends for
summaries, explanations, study plans, follow-up chat and practice questions.
All builders are pure functions.
"""

from typing import Dict, List, Optional, Sequence, Tuple

from .models import ExplanationLevel, QuestionType, SummaryComplexity

PLAIN_TEXT_ONLY = "Return plain text only, no markdown code blocks."

IMAGE_ANALYSIS_INSTRUCTION = (
    "First, analyze the image(s) to understand the educational content. "
    "Then complete the task below based on what you see."
)

SUMMARY_TEMPLATES: Dict[SummaryComplexity, str] = {
    SummaryComplexity.SIMPLE: """Create a brief, easy-to-understand summary of the following text in bullet points{count_clause}. Keep it concise and focus on the main ideas. {plain_text}

{text}""",
    SummaryComplexity.DETAILED: """Create a detailed summary of the following text{count_clause}. Include:
- Key concepts
- Important definitions
- Main points (numbered)
- Examples if applicable

{plain_text}

Text:
{text}""",
    SummaryComplexity.COMPREHENSIVE: """Create a comprehensive study summary of the following text{count_clause}. Include:
1. Overview
2. Key Concepts with explanations
3. Important Definitions
4. Main Points (detailed)
5. Examples and Applications
6. Common Misconceptions to Avoid
7. Study Tips

{plain_text}

Text:
{text}""",
}

EXPLANATION_LEVEL_DESCRIPTIONS: Dict[ExplanationLevel, str] = {
    ExplanationLevel.BEGINNER: (
        "Explain this like you're teaching a complete beginner. Use simple "
        "language, everyday analogies, and avoid jargon."
    ),
    ExplanationLevel.INTERMEDIATE: (
        "Explain this for someone with basic knowledge. Include some technical "
        "terms but explain them."
    ),
    ExplanationLevel.ADVANCED: (
        "Provide an in-depth explanation for someone with good foundational "
        "knowledge. Include technical details and nuances."
    ),
}

EXPLANATION_STRUCTURE = """Include:
1. Simple Definition
2. Real-World Analogy
3. Step-by-Step Explanation
4. Common Misconceptions
5. Practical Applications
6. Related Concepts

Use clear formatting with headers and bullet points."""

FOLLOW_UP_SYSTEM_PROMPT = """You are a helpful study assistant. The user has been studying a topic and has asked follow-up questions about the content.
{context_block}
Provide clear, helpful answers to their questions. Keep your responses focused and educational. If they ask to explain more about something, provide detailed explanations. If they ask what something means, give clear definitions with examples."""

QUESTION_PHRASING_RULES = (
    "PHRASING RULES:\n"
    '- Do NOT refer to the input text as "The Summary", "الملخص", or "the passage".\n'
    '- Instead, quote the text directly or refer to it as "the text" (النص) '
    'or "the phrase" (العبارة).\n'
    "- Example: Ask \"ما معنى كلمة 'تحليل'؟\" instead of \"ما معنى الملخص؟\""
)

IMAGE_DESCRIPTION_PROMPT = (
    "Extract and describe all text, diagrams, and educational content from "
    "this image in detail."
)

IMAGE_ANALYSIS_HEADER = "Image Analysis:"

TEXT_EXTRACTION_SYSTEM_PROMPT = """You are an expert OCR system that extracts text from images. Your task:

1. Extract ALL text from the provided image(s), including:
   - Arabic text (العربية) - preserve right-to-left formatting
   - English text
   - Mixed Arabic-English text
   - Numbers, symbols, and special characters

2. Preserve the original formatting, structure, and paragraph breaks as much as possible.

3. For Arabic text specifically:
   - Maintain proper Arabic character encoding (UTF-8)
   - Preserve diacritical marks (تشكيل) if present
   - Keep Arabic numbers (٠١٢٣٤٥٦٧٨٩) as-is

4. If there are multiple images, combine the text from all images in order.

5. Return ONLY the extracted text with no additional commentary."""

TEXT_EXTRACTION_USER_PROMPT = "Extract the text from the attached image(s)."


def with_image_instruction(prompt: str, include_images: bool = True) -> str:
    """Prefix a prompt with the instruction to analyze attachments first."""
    if not include_images:
        return prompt
    return f"{IMAGE_ANALYSIS_INSTRUCTION}\n\n{prompt}"


def append_image_analysis(text: str, descriptions: Sequence[str]) -> str:
    """Append image descriptions to the source text for text-only backends."""
    analysis = "\n\n".join(d.strip() for d in descriptions if d and d.strip())
    if not analysis:
        return text
    section = f"{IMAGE_ANALYSIS_HEADER}\n{analysis}"
    return f"{text.strip()}\n\n{section}" if text and text.strip() else section


def build_summary_prompt(
    text: str,
    complexity: SummaryComplexity,
    count: Optional[int] = None,
    include_images: bool = False,
) -> str:
    """Build a summarization prompt.

    Args:
        text: Source text (may be empty when only images are supplied)
        complexity: Detail tier selecting the template
        count: Exact number of main bullet points, if requested
        include_images: Whether image attachments accompany the prompt

    Returns:
        Complete prompt string for the LLM
    """
    count_clause = f" in exactly {count} main bullet points" if count else ""
    source = text.strip() if text else ""
    if not source and include_images:
        source = "(See the attached image(s).)"
    prompt = SUMMARY_TEMPLATES[complexity].format(
        count_clause=count_clause, plain_text=PLAIN_TEXT_ONLY, text=source
    )
    return with_image_instruction(prompt.strip(), include_images)


def build_explanation_prompt(
    concept: Optional[str],
    level: ExplanationLevel,
    include_images: bool = False,
    image_descriptions: Optional[Sequence[str]] = None,
) -> str:
    """Build a concept explanation prompt.

    Without a concept the model is asked to identify it from the images, or
    from their descriptions when the backend cannot read images.
    """
    if concept and concept.strip():
        base = f'Explain the concept: "{concept.strip()}"'
    elif image_descriptions:
        base = "Identify the concept or topic described in the image analysis below and explain it."
    else:
        base = "Identify the concept or topic shown in the image(s) and explain it."

    analysis = (
        "First, analyze the image(s) to understand the concept being shown. Then:\n\n"
        if include_images
        else ""
    )
    described = append_image_analysis("", image_descriptions or [])
    if described:
        described = f"\n\n{described}"

    return f"""{EXPLANATION_LEVEL_DESCRIPTIONS[level]}

{analysis}{base}{described}

{EXPLANATION_STRUCTURE} {PLAIN_TEXT_ONLY}"""


def build_study_plan_prompt(topics: Sequence[str], days: int, hours: float) -> str:
    """Build a day-by-day study plan prompt."""
    total_hours = days * hours
    return f"""Create a detailed study plan with the following parameters:

Topics to cover: {", ".join(topics)}
Total days available: {days}
Hours per day: {hours:g}
Total study time: {total_hours:g} hours

Create a structured day-by-day schedule that includes:
1. Daily study goals
2. Time allocation per topic
3. Short breaks
4. Review sessions
5. Practice/quiz time
6. Progress checkpoints

Format it clearly with:
- Day headers
- Time slots
- Topics for each slot
- Daily objectives
- Tips for effective studying

Make it practical and achievable. {PLAIN_TEXT_ONLY}"""


def build_follow_up_system_prompt(context: Optional[str] = None) -> str:
    """Build the system prompt for follow-up chat."""
    context_block = (
        f"\nContext about the conversation:\n{context.strip()}\n"
        if context and context.strip()
        else ""
    )
    return FOLLOW_UP_SYSTEM_PROMPT.format(context_block=context_block)


def get_type_distribution(
    question_types: Sequence[QuestionType], count: int
) -> List[Tuple[QuestionType, int]]:
    """Split ``count`` evenly across types; the remainder goes to the first types."""
    if not question_types:
        return []
    per_type, remainder = divmod(count, len(question_types))
    return [
        (question_type, per_type + (1 if i < remainder else 0))
        for i, question_type in enumerate(question_types)
    ]


def _type_instructions(
    question_types: Sequence[QuestionType], true_false_labels: Tuple[str, str]
) -> str:
    true_label, false_label = true_false_labels
    blocks: List[str] = []

    if QuestionType.MULTIPLE_CHOICE in question_types:
        blocks.append(
            """**MULTIPLE CHOICE (mcq)**:
- "type": "mcq"
- "options": MUST be an array of EXACTLY 4 distinct options (no A/B/C/D prefixes, the app adds labels)
- "correctAnswer": Must match one of the 4 options exactly
- Example: {"question": "What is...?", "options": ["Option A", "Option B", "Option C", "Option D"], "correctAnswer": "Option A", "explanation": "...", "type": "mcq"}"""
        )

    if QuestionType.TRUE_FALSE in question_types:
        blocks.append(
            f"""**TRUE/FALSE (trueFalse)**:
- "type": "trueFalse"
- "options": MUST be EXACTLY ["{true_label}", "{false_label}"]. DO NOT use other languages. DO NOT use A/B/C/D. DO NOT invent other options.
- "correctAnswer": MUST be either "{true_label}" or "{false_label}" (nothing else)
- The question should be a statement that is either true or false
- Example: {{"question": "...", "options": ["{true_label}", "{false_label}"], "correctAnswer": "{true_label}", "explanation": "...", "type": "trueFalse"}}"""
        )

    if QuestionType.SHORT_ANSWER in question_types:
        blocks.append(
            """**SHORT ANSWER (shortAnswer)**:
- "type": "shortAnswer"
- "options": MUST be an empty array []
- "correctAnswer": The expected short answer (a word, phrase, or brief sentence)
- The question should require a brief written response
- Example: {"question": "What is the capital of France?", "options": [], "correctAnswer": "Paris", "explanation": "...", "type": "shortAnswer"}"""
        )

    return "\n\n".join(blocks)


def _validation_rules(
    question_types: Sequence[QuestionType], true_false_labels: Tuple[str, str]
) -> str:
    rules = ["VALIDATION RULES:"]
    if QuestionType.TRUE_FALSE in question_types:
        rules.append(
            f'- For trueFalse: options MUST be ["{true_false_labels[0]}", '
            f'"{true_false_labels[1]}"] - NEVER use other labels, NEVER use A/B/C/D'
        )
    if QuestionType.MULTIPLE_CHOICE in question_types:
        rules.append("- For mcq: options MUST have exactly 4 items")
    if QuestionType.SHORT_ANSWER in question_types:
        rules.append("- For shortAnswer: options MUST be empty []")
    rules.append("- Every question must be different from every other question")
    return "\n".join(rules)


def build_question_prompt(
    source_text: str,
    question_types: Sequence[QuestionType],
    count: int,
    true_false_labels: Tuple[str, str],
    existing_count: int = 0,
    include_images: bool = False,
) -> str:
    """Build a practice question generation prompt.

    Args:
        source_text: Text to base questions on
        question_types: Allowed question types, in priority order
        count: Total number of questions wanted
        true_false_labels: The fixed (true, false) option pair
        existing_count: Questions already collected; when positive only the
            shortfall is requested
        include_images: Whether image attachments accompany the prompt

    Returns:
        Complete prompt string for the LLM
    """
    type_instructions = _type_instructions(question_types, true_false_labels)
    source = source_text.strip() if source_text else ""
    if not source and include_images:
        source = "(See the attached image(s).)"

    if existing_count > 0:
        remaining = max(count - existing_count, 1)
        prompt = f"""You previously generated only {existing_count} questions. You MUST now continue and generate questions {existing_count + 1} through {existing_count + remaining}.

CRITICAL: Generate EXACTLY {remaining} MORE questions now. Do NOT repeat previous questions.

STRICT TYPE-SPECIFIC FORMAT REQUIREMENTS:
{type_instructions}

Return ONLY a valid JSON array of {remaining} question objects. No markdown, no code blocks.

Text to base questions on:
{source}"""
        return with_image_instruction(prompt, include_images)

    distribution = ", ".join(
        f"{n} {question_type.value} questions"
        for question_type, n in get_type_distribution(question_types, count)
    )

    prompt = f"""You are an exam generator. Your task is to generate EXACTLY {count} practice questions.

CRITICAL INSTRUCTIONS:
- You MUST generate EXACTLY {count} questions. Not less, not more.
- Generate approximately: {distribution}
- Do NOT stop early. Generate all {count} questions.
- Return a JSON array with exactly {count} elements.

{QUESTION_PHRASING_RULES}

STRICT TYPE-SPECIFIC FORMAT REQUIREMENTS (FOLLOW EXACTLY):
{type_instructions}

{_validation_rules(question_types, true_false_labels)}

OUTPUT FORMAT: Return Minified JSON array only. No markdown, no code blocks, no explanatory text.

Text to base questions on:
{source}"""
    return with_image_instruction(prompt, include_images)
