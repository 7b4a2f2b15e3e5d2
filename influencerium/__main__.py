"""Run the Influencerium access API: python3 -m influencerium"""

import uvicorn

from influencerium.config import settings


def main() -> None:
    uvicorn.run("influencerium.api.app:app", host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
