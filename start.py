import os
import sys
import uvicorn


def main():
    cards_path = sys.argv[1] if len(sys.argv) > 1 else "flashcards.csv"
    if not os.path.exists(cards_path):
        print(f"Cards file not found at {cards_path}.")
        sys.exit(1)

    # The app reads these on import
    os.environ["REVIEW_CARDS_PATH"] = cards_path
    os.environ.setdefault("REVIEW_SETTINGS_PATH", "settings.json")

    port = int(os.environ.get("REVIEW_PORT", "8000"))
    print(f"Serving review core for {cards_path} on http://127.0.0.1:{port}/docs")
    try:
        uvicorn.run("review_core.main:app", host="127.0.0.1", port=port)
    except KeyboardInterrupt:
        print("\nStopping...")


if __name__ == "__main__":
    main()
