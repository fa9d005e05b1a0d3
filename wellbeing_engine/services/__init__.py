# services/__init__.py

"""
Сервисы аналитики: окна, серии, корреляции, инсайты, прогресс, гейт разблокировки
"""

from .engine import WellbeingEngine

__all__ = ['WellbeingEngine']
