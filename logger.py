import logging

_level = logging.INFO
_loggers = {}


def get_logger(name: str) -> logging.Logger:
    """
    모듈 단위 로거를 반환합니다.
    - 핸들러는 한 번만 붙여 중복 출력을 막습니다.
    - 레벨은 set_level()로 일괄 변경합니다 (main.py의 --log-level).
    """
    logger = logging.getLogger(name)

    if not logger.handlers:
        handler = logging.StreamHandler()
        formatter = logging.Formatter(
            "%(asctime)s [%(levelname)s] %(message)s"
        )
        handler.setFormatter(formatter)

        logger.addHandler(handler)
        logger.setLevel(_level)

        logger.propagate = False

    _loggers[name] = logger
    return logger


def set_level(level: str) -> None:
    """get_logger()로 만든 모든 로거와 이후 만들어질 로거의 레벨을 바꿉니다."""
    global _level

    numeric = logging.getLevelName(level.upper())
    if not isinstance(numeric, int):
        raise ValueError(f"Unknown log level: {level}")

    _level = numeric
    for logger in _loggers.values():
        logger.setLevel(numeric)
