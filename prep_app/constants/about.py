"""Static metadata describing PrepQuiz."""

APP_NAME = "PrepQuiz"
APP_VERSION = "0.1"
APP_LICENSE = "MIT License"
APP_ABOUT_TEXT = (
    "PrepQuiz is a web-based exam preparation tool built with FastAPI. "
    "Take timed daily, subject and mock quizzes with follow-up questions, "
    "track your progress, and manage the question bank from the admin panel."
)

HELP_TEXT = (
    "Questions can be imported in bulk from a .txt file using the format:\n\n"
    "Q: What is $30^o$ in radians?\n"
    "A: \\frac{\\pi}{2}\nB: \\frac{\\pi}{6}\nC: \\frac{\\pi}{3}\n"
    "CORRECT: B\nEXPLANATION: Multiply degrees by $\\pi/180$.\n"
    "SUBJECT: Mathematics\nDIFFICULTY: easy\n"
    "SUB IF A ORDER 1: Which factor converts degrees to radians?\n"
    "A: 180/\\pi\nB: \\pi/180\n"
    "CORRECT: B\nEXPLANATION: One degree is $\\pi/180$ radians.\n\n"
    "Continue longer text on indented lines starting with '  | '."
)
