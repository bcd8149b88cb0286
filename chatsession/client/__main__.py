"""
Entry point for the chat session client.
Runs the terminal interface: python -m chatsession.client
"""
from .cli import app


def main():
    """Launch the terminal chat client.
    
    Dispatches to the typer app, which provides the interactive "run"
    command and the scripted "replay" command.
    """
    app()


if __name__ == "__main__":
    main()
