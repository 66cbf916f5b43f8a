"""postwhale - explore and exercise internal HTTP services."""

__version__ = "0.1.0"
__logo__ = "🐳"
