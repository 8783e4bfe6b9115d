"""
Модуль сообщений (RabbitMQ + FastStream).

Содержит:
- vhosts: виртуальные хосты и подключения к ним
- codec: payload -> bytes
- producers / consumers
- server: сборка всего вместе (BrokerServer)
"""
