"""
usersync: синхронизация пользователей из внешнего HTTP источника.

Компоненты:
- messaging: виртуальные хосты RabbitMQ, producer'ы и consumer'ы (FastStream)
- services: сервисы, воркер фоновых задач (APScheduler)
- api: HTTP (FastAPI)
"""

__version__ = "0.1.0"
