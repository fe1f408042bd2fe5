"""Run the provisioning API with uvicorn."""

import os

import uvicorn

from ..constants import EnvironmentVariable


def main() -> None:
    uvicorn.run(
        "rpanel_core.api.app:build_app",
        factory=True,
        host=os.getenv(EnvironmentVariable.HOST.value, "127.0.0.1"),
        port=int(os.getenv(EnvironmentVariable.PORT.value, "8080")),
    )


if __name__ == "__main__":
    main()
