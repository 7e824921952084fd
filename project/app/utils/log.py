# app/utils/log.py
# Registro de eventos (arquivo por dia + eco opcional no console)

import os
import datetime
import logging
from decimal import Decimal
from enum import Enum

from aiologger import Logger
from aiologger.handlers.files import AsyncFileHandler


class Log:
    def __init__(self, log_dir: str = "app/log", log_print: str | bool = "0"):
        self.log_dir = log_dir
        os.makedirs(self.log_dir, exist_ok=True)
        self.handlers = {}
        if isinstance(log_print, bool):
            self.log_print = log_print
        else:
            self.log_print = str(log_print).lower() in ("1", "true", "yes")

    def build_log_path(self, now: datetime.datetime) -> str:
        """
        Caminho do arquivo do dia:
        app/log/2026/10/17.log
        """
        base_dir = os.path.join(self.log_dir, f"{now.year}", f"{now:%m}")
        os.makedirs(base_dir, exist_ok=True)
        return os.path.join(base_dir, f"{now:%d}.log")

    async def get_logger(self, target: str, now: datetime.datetime) -> Logger:
        """Logger assíncrono do target; troca o arquivo na virada do dia."""
        log_path = self.build_log_path(now)

        current = self.handlers.get(target)
        if current is None or current["path"] != log_path:
            handler = AsyncFileHandler(filename=log_path, mode="a", encoding="utf-8")
            target_logger = Logger(name=f"logger_{target}")
            target_logger.add_handler(handler)

            if current is not None:
                await current["logger"].shutdown()

            self.handlers[target] = {
                "path": log_path,
                "logger": target_logger,
            }

        return self.handlers[target]["logger"]

    def format_line(self, now: datetime.datetime, target: str, message: str, data: dict | None) -> str:
        line = f"{now:%d.%m.%Y %H:%M:%S} {target}: {message}"
        if data:
            line += f": {self.safe_serialize(data)}"
        return line

    # Assíncrono
    async def log_info(
        self,
        target: str = "",
        message: str = "",
        data: dict | None = None,
        is_console: bool = None,
    ):
        now = datetime.datetime.now()
        line = self.format_line(now, target, message, data)

        target_logger = await self.get_logger(target, now)
        await target_logger.info(line)

        should_print = self.log_print if is_console is None else is_console
        if should_print:
            print(line)

    async def log_warning(self, target: str = "", message: str = "", data: dict | None = None, is_console: bool = None):
        await self.log_info(target, f"WARNING: {message}", data, is_console)

    async def log_error(
        self, target: str = "", message: str = "", data: dict | None = None, is_console: bool = True
    ):
        await self.log_info(target, f"ERROR: {message}", data, is_console)

    # Síncrono (boot, antes do loop)
    def log_info_sync(
        self, target: str = "", message: str = "", data: dict | None = None, is_console: bool = None
    ):
        now = datetime.datetime.now()
        line = self.format_line(now, target, message, data)

        logger = logging.getLogger(f"sync_logger_{target}")
        logger.setLevel(logging.INFO)
        if not logger.handlers:
            handler = logging.FileHandler(self.build_log_path(now), mode="a", encoding="utf-8")
            handler.setFormatter(logging.Formatter("%(message)s"))
            logger.addHandler(handler)

        logger.info(line)

        should_print = self.log_print if is_console is None else is_console
        if should_print:
            print(line)

    def log_warning_sync(self, target: str = "", message: str = "", data: dict | None = None, is_console: bool = None):
        self.log_info_sync(target, f"WARNING: {message}", data, is_console)

    def safe_serialize(self, obj):
        """
        Converte o objeto para algo legível no log:
        - dict, list, tuple, set recursivamente
        - Decimal e Enum pelo valor, datetime em ISO
        - modelos Pydantic via model_dump
        - o resto vira "<Tipo>"
        """
        if obj is None or isinstance(obj, (str, int, float, bool)):
            return obj
        elif isinstance(obj, Enum):
            return obj.value
        elif isinstance(obj, Decimal):
            return str(obj)
        elif isinstance(obj, (datetime.datetime, datetime.date)):
            return obj.isoformat()
        elif isinstance(obj, dict):
            return {k: self.safe_serialize(v) for k, v in obj.items()}
        elif isinstance(obj, (list, tuple, set)):
            return [self.safe_serialize(v) for v in obj]
        elif hasattr(obj, "model_dump"):  # Pydantic
            return self.safe_serialize(obj.model_dump())
        else:
            return f"<{type(obj).__name__}>"

    async def shutdown(self):
        for h in list(self.handlers.values()):
            await h["logger"].shutdown()
        self.handlers.clear()
