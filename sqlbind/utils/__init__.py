from sqlbind.utils import dates, logging, module_loader, text

__all__ = ("dates", "logging", "module_loader", "text")
