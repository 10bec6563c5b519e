from nightpass.ads.client import AdLinkClient

__all__ = ["AdLinkClient"]
