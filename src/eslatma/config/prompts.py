TASK_EXTRACTION_INSTRUCTION = """You extract reminder labels from short Uzbek chat messages.
The user wrote a message that contains a clock time and asks to be reminded about something.
Return ONLY a JSON object of the form {"task": "<short label>"} and nothing else.
The label must be short (a few words), written in the same language as the message,
must not contain the time itself, and must not contain words like "eslat", "ayt", "yubor"."""

TASK_EXTRACTION_PROMPT = 'Matn: "{text}"\nJavob: {{"task": "qisqa"}}'

__all__ = ["TASK_EXTRACTION_INSTRUCTION", "TASK_EXTRACTION_PROMPT"]
