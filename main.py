import os

import uvicorn

from code_runner.log_config import setup_logging
from code_runner.settings import get_settings


def main() -> None:
    setup_logging(get_settings().log_level)
    port = int(os.getenv("PORT", 8765))
    uvicorn.run("code_runner.api:app", host="0.0.0.0", port=port, reload=False, log_config=None)


if __name__ == "__main__":
    main()
