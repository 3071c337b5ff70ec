"""dwight - Interactive chat sessions with local Ollama models.

dwight drives a chat session against a locally running Ollama backend:
it makes sure the selected model is installed, assembles each request
from the profile, the conversation history and any attached files,
streams the reply, and saves conversations to disk.

Key modules:

- :mod:`dwight.chat` - Session state machine, context assembly and stream parsing
- :mod:`dwight.backend` - Ollama HTTP client and model availability checks
- :mod:`dwight.storage` - Conversation persistence and export
- :mod:`dwight.config` - YAML configuration with zero-config defaults
- :mod:`dwight.cli` - Typer command line interface
"""

__version__ = "0.1.0"
