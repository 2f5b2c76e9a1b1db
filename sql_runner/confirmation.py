# Standard library imports
import sys


CONFIRMATION_WARNING = (
    "WARNING: This will execute the SQL scripts listed above against the "
    "target database.\nAll changes are made in a single transaction and are "
    "rolled back if any script fails."
)


def prompt_confirmation(phrase, stream=None, output=None):
    """
    Asks the user to type ``phrase`` before anything is executed.

    Returns True only when the typed answer matches exactly. A
    non-interactive stream, end of input or Ctrl+C all count as a refusal.
    """
    stream = stream or sys.stdin
    output = output or sys.stdout

    if not stream.isatty():
        print(
            "Non-interactive mode detected. Use -y to skip confirmation.",
            file=output,
        )
        return False

    print(f"\n{CONFIRMATION_WARNING}\n", file=output)
    print(f'Type "{phrase}" to proceed: ', end="", file=output, flush=True)
    try:
        answer = stream.readline()
    except (EOFError, KeyboardInterrupt):
        print(file=output)
        return False

    # readline() returns '' at end of input
    if not answer:
        return False
    return answer.rstrip("\r\n") == phrase
