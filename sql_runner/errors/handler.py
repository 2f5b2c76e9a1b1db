# Custom library imports
from sql_runner.errors.base import error_message
from sql_runner.errors.formatters import create_default_formatter
from sql_runner.errors.registry import create_default_registry
from sql_runner.models import ConnectionContext, ErrorHelp


GENERIC_SUGGESTIONS = (
    "This error was not recognized. Here are some general suggestions:",
    "",
    "1. Check your DATABASE_URL is correct",
    "2. Verify the database server is running",
    "3. Check your network connection",
    "4. Try copying a fresh connection string from Supabase Dashboard > Connect",
    "",
    "If using Supabase, make sure to use the Session Pooler (not Direct Connection)",
    "for best compatibility.",
)


class ConnectionErrorHandler:
    """
    Explains connection errors.

    Each caller builds its own handler; pass a custom ``registry`` to add
    detectors or a ``formatter`` to change how help is rendered.

        handler = ConnectionErrorHandler()
        error_help = handler.get_help(error, ConnectionContext(database_url=url))
        print(handler.format(error_help))
    """

    def __init__(self, registry=None, formatter=None):
        self.registry = registry if registry is not None else create_default_registry()
        self.formatter = formatter if formatter is not None else create_default_formatter()

    def get_help(self, error, context=None):
        """
        Analyzes an error. Never returns None: unrecognized errors get a
        generic 'Connection Error' explanation.
        """
        context = context or ConnectionContext()
        detector = self.registry.find_detector(error, context)
        if detector is not None:
            return detector.get_help(error, context)
        return self._generic_help(error)

    def format(self, error_help):
        return self.formatter.format(error_help)

    def handle_error(self, error, context=None):
        """Analyzes and formats in one call."""
        return self.format(self.get_help(error, context))

    def is_known_error(self, error, context=None):
        return self.registry.find_detector(error, context or ConnectionContext()) is not None

    def _generic_help(self, error):
        message = error_message(error)
        return ErrorHelp(
            is_known_error=False,
            title="Connection Error",
            explanation=message,
            suggestions=GENERIC_SUGGESTIONS,
            docs_url="https://supabase.com/docs/guides/database/connecting-to-postgres",
            original_message=message,
        )
