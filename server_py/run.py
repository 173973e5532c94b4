import asyncio
import platform
import sys
from pathlib import Path

# Запуск из корня server_py без установки пакета
sys.path.append(str(Path(__file__).resolve().parent))

import uvicorn
from ticketdesk.core.config import settings
from ticketdesk.core.init_db import init_db
from ticketdesk.main import configure_logging

# Для Windows: aiosqlite и вебсокеты работают стабильнее на SelectorEventLoop
if platform.system() == 'Windows':
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())


def main() -> None:
    configure_logging()
    # Таблицы и каталог вложений создаются до старта, чтобы /uploads сразу отдавал файлы
    asyncio.run(init_db())

    uvicorn.run(
        "ticketdesk.main:app",
        host=settings.SERVER_HOST,
        port=settings.SERVER_PORT,
        log_level=settings.LOG_LEVEL.lower(),
        # reload=True игнорирует host, поэтому для доступа из сети он выключен
        reload=False,
    )


if __name__ == "__main__":
    main()
