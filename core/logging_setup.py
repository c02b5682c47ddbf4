"""
Logging Setup for Carriage Simulator

Console output with coloured levels, a rotating main log, a rotating
error log and one rotating file each for the motion, web and core
packages. Every record is tagged with the package it came from.

Author: Carriage Simulator Development
Created: October 2026
"""

import logging
import logging.handlers
import sys
from pathlib import Path
from typing import Optional


MODULE_LOG_FILES = {
    'motion': 'motion_control.log',
    'web': 'web_interface.log',
    'core': 'core_services.log',
}

FILE_FORMAT = '%(asctime)s | %(levelname)-8s | %(sim_module)-6s | %(name)-24s | %(message)s'
CONSOLE_FORMAT = '%(asctime)s | %(levelname)-8s | %(sim_module)-6s | %(message)s'


class ColoredFormatter(logging.Formatter):
    """Console formatter with ANSI-coloured level names"""

    COLORS = {
        'DEBUG': '\033[36m',
        'INFO': '\033[32m',
        'WARNING': '\033[33m',
        'ERROR': '\033[31m',
        'CRITICAL': '\033[1;31m',
    }
    RESET = '\033[0m'

    def format(self, record):
        color = self.COLORS.get(record.levelname)
        if color is None:
            return super().format(record)

        # File handlers see the same record, so colour a copy
        record = logging.makeLogRecord(record.__dict__)
        record.levelname = f"{color}{record.levelname}{self.RESET}"
        return super().format(record)


class SimulatorLogFilter(logging.Filter):
    """Sets record.sim_module to motion, web, core or system"""

    def filter(self, record):
        if not hasattr(record, 'sim_module'):
            package = record.name.split('.', 1)[0]
            record.sim_module = package if package in MODULE_LOG_FILES else 'system'
        return True


class ModuleFilter(logging.Filter):
    """Passes only records from one package"""

    def __init__(self, module_name: str):
        super().__init__()
        self.module_name = module_name

    def filter(self, record):
        return record.name == self.module_name or record.name.startswith(self.module_name + '.')


def _rotating_handler(path: Path, level: int, formatter: logging.Formatter,
                      max_bytes: int, backup_count: int) -> logging.Handler:
    handler = logging.handlers.RotatingFileHandler(
        filename=path,
        maxBytes=max_bytes,
        backupCount=backup_count,
        encoding='utf-8'
    )
    handler.setLevel(level)
    handler.setFormatter(formatter)
    handler.addFilter(SimulatorLogFilter())
    return handler


def _drop_handlers(logger: logging.Logger):
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)
        handler.close()


def setup_logging(log_level: str = "INFO",
                  log_dir: Optional[Path] = None,
                  enable_console: bool = True,
                  enable_file: bool = True,
                  max_file_size: int = 10 * 1024 * 1024,  # 10MB
                  backup_count: int = 5) -> logging.Logger:
    """
    Configure the root logger for the simulator

    Safe to call more than once; earlier handlers are replaced.

    Args:
        log_level: DEBUG, INFO, WARNING, ERROR or CRITICAL
        log_dir: Directory for log files (default ~/simulator_logs)
        enable_console: Log to stdout
        enable_file: Write the rotating log files
        max_file_size: Rotation size of the main and error logs
        backup_count: Rotated copies kept of the main and error logs

    Returns:
        The root logger
    """
    level = getattr(logging, log_level.upper(), logging.INFO)
    log_dir = Path(log_dir) if log_dir is not None else Path.home() / "simulator_logs"

    root = logging.getLogger()
    _drop_handlers(root)
    root.setLevel(level)

    if enable_console:
        console = logging.StreamHandler(sys.stdout)
        console.setLevel(level)
        console.setFormatter(ColoredFormatter(CONSOLE_FORMAT, datefmt='%H:%M:%S'))
        console.addFilter(SimulatorLogFilter())
        root.addHandler(console)

    if enable_file:
        log_dir.mkdir(parents=True, exist_ok=True)
        file_formatter = logging.Formatter(FILE_FORMAT, datefmt='%Y-%m-%d %H:%M:%S')

        root.addHandler(_rotating_handler(log_dir / "simulator.log", level, file_formatter,
                                          max_file_size, backup_count))
        root.addHandler(_rotating_handler(log_dir / "simulator_errors.log", logging.ERROR,
                                          file_formatter, max_file_size, backup_count))

        for module_name, filename in MODULE_LOG_FILES.items():
            module_logger = logging.getLogger(module_name)
            _drop_handlers(module_logger)
            handler = _rotating_handler(log_dir / filename, level, file_formatter,
                                        5 * 1024 * 1024, 3)
            handler.addFilter(ModuleFilter(module_name))
            module_logger.addHandler(handler)

    logger = logging.getLogger(__name__)
    logger.info(f"Logging initialized at {log_level.upper()}, "
                f"files {'in ' + str(log_dir) if enable_file else 'disabled'}")
    return root
