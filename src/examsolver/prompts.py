"""Prompt text sent to the chat-completion service.

The instruction text is part of the contract with the model: the classifier
relies on the ``valid request`` / ``invalid request`` tokens it asks for.
"""

SYSTEM_PROMPT = "You are a helpful assistant. Answer concisely and correctly."

EXAM_PROMPT = (
    "Please answer all questions shown in the current image. "
    "A request is considered invalid if the image is irrelevant to this task. "
    "If the request is valid, provide concise and correct answers with minimal analysis. "
    "For a valid request, first return 'valid request' and then return one or more lines "
    "in the format: '<question_id>: (<analysis>) **<answer>**'. "
    "If the request is invalid due to text too small or blurred, still try your best to answer, "
    "i.e., return 'valid request', a warning of 'the answer might be incorrect due to text too "
    "small, please stay closer' and then return one or more lines in the format: "
    "'<question_id>: (<analysis>) **answer**'. "
    "If it is really hard to parse or invalid due to other reasons, return: "
    "'invalid request: <brief_reason>'. "
    "Ensure the output strictly matches the format above."
)
