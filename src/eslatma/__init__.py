"""Eslatma: Telegram 提醒机器人

用户发送一句带时间的话 (例如 "12:00 da darsim bor"), 到点后机器人把提醒发回给用户。
"""

__version__ = "1.0.0"
