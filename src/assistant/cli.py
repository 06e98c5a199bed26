import sys
import typer
from assistant.config import settings
from assistant.errors import AssistantError
from assistant.logging import logger, get_request_id

app = typer.Typer(no_args_is_help=True)

@app.callback()
def main():
    """
    Customer Assistant CLI.
    """
    pass

@app.command(name="doctor")
def doctor():
    """
    Check system configuration and environment health.
    """
    logger.info("Running doctor check...")

    print("\n🩺 Customer Assistant Doctor\n")

    print(f"Python: {sys.version.split()[0]}")
    print(f"Prefix: {sys.prefix}")
    print(f"Request ID: {get_request_id()}")

    print("\n[Configuration]")
    print(f"OPENAI_MODEL_AGENT:       {settings.OPENAI_MODEL_AGENT}")
    print(f"OPENAI_EMBEDDING_MODEL:   {settings.OPENAI_EMBEDDING_MODEL}")
    print(f"EMBEDDING_PROVIDER:       {settings.EMBEDDING_PROVIDER}")
    print(f"DATABASE_URL:             {settings.DATABASE_URL}")
    print(f"MEMORY_MAX_TURNS:         {settings.MEMORY_MAX_TURNS}")
    print(f"RETRIEVAL_POLICY:         {settings.RETRIEVAL_POLICY.value}")
    print(f"RETRIEVAL_TOP_K:          {settings.RETRIEVAL_TOP_K}")
    print(f"TOOL_SELECTION:           {settings.TOOL_SELECTION}")
    print(f"TOOL_TIMEOUT_SECONDS:     {settings.TOOL_TIMEOUT_SECONDS}")

    # Mask API Key
    api_key_status = "✅ Set" if settings.OPENAI_API_KEY and settings.OPENAI_API_KEY.get_secret_value() else "❌ Missing"
    print(f"OPENAI_API_KEY:           {api_key_status}")

    print("\nDoctor check complete.")


db_app = typer.Typer(help="Database management commands.")
app.add_typer(db_app, name="db")

@db_app.command("init")
def init():
    """Initialize the database tables."""
    from assistant.db import create_db_engine, init_db
    try:
        init_db(create_db_engine(settings.DATABASE_URL))
        logger.info("Database initialized successfully.")
        print("✅ Database initialized.")
    except Exception as e:
        logger.error(f"Failed to initialize database: {e}")
        print(f"❌ Failed: {e}")
        raise typer.Exit(code=1)

@db_app.command("seed")
def seed():
    """Seed the demo customers into an empty database."""
    from assistant.bootstrap import seed_customers
    from assistant.db import create_db_engine, init_db
    from assistant.store.records import RecordStore
    try:
        engine = create_db_engine(settings.DATABASE_URL)
        init_db(engine)
        store = RecordStore(engine)
        seeded = seed_customers(store)
        print(f"✅ Seeded {len(seeded)} customers ({store.count()} total).")
    except Exception as e:
        logger.error(f"Seeding failed: {e}")
        print(f"❌ Failed: {e}")
        raise typer.Exit(code=1)


def _build():
    from assistant.bootstrap import build_assistant
    try:
        return build_assistant(settings)
    except Exception as e:
        logger.error(f"Failed to start assistant: {e}")
        print(f"❌ Failed to start: {e}")
        raise typer.Exit(code=1)

@app.command("ask")
def ask(user: str, query: str):
    """Send one message as USER and print the reply."""
    assistant = _build()
    try:
        print(assistant.ask(user, query))
    except AssistantError as e:
        print(f"❌ {e}")
        raise typer.Exit(code=1)

@app.command("chat")
def chat(user: str):
    """Interactive conversation as USER. Type 'exit' to quit."""
    assistant = _build()
    print(f"Chatting as {user}. Type 'exit' to quit.")
    while True:
        try:
            query = input("> ")
        except EOFError:
            break
        if query.strip().lower() in ("exit", "quit"):
            break
        if not query.strip():
            continue
        try:
            print(assistant.ask(user, query))
        except AssistantError as e:
            # Keep the session alive; the caller decides whether to retry
            print(f"❌ {e}")

@app.command("search")
def search(query: str, k: int = typer.Option(4, "--k", help="Number of results.")):
    """Nearest-neighbour search over the indexed customers."""
    assistant = _build()
    try:
        results = assistant.index.search(assistant.embedder.embed(query), k)
    except AssistantError as e:
        print(f"❌ {e}")
        raise typer.Exit(code=1)
    if not results:
        print("No results found.")
        return

    print(f"Found {len(results)} results:")
    for i, (doc, score) in enumerate(results, 1):
        print(f"{i}. [{doc.id}] ({score:.3f}) {doc.text}")

if __name__ == "__main__":
    app()
