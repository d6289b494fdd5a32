from app.routers import evidence, pci, risks, templates

__all__ = [
    "evidence",
    "pci",
    "risks",
    "templates",
]
