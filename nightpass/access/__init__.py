from nightpass.access.manager import AccessWindowManager
from nightpass.access.models import AccessSource, AccessWindow

__all__ = ["AccessSource", "AccessWindow", "AccessWindowManager"]
