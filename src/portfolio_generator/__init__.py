def main() -> None:
    """Entry point for the application.

    Starts the development API server.
    """
    from portfolio_generator.api.main import main as api_main

    api_main()
