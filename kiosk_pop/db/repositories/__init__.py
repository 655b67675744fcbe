from kiosk_pop.db.repositories.assets import AssetsRepository
from kiosk_pop.db.repositories.campaigns import CampaignsRepository
from kiosk_pop.db.repositories.kiosks import KiosksRepository
from kiosk_pop.db.repositories.notifications import NotificationsRepository
from kiosk_pop.db.repositories.orgs import OrgsRepository
from kiosk_pop.db.repositories.plays import PlaysRepository

__all__ = [
    "AssetsRepository",
    "CampaignsRepository",
    "KiosksRepository",
    "NotificationsRepository",
    "OrgsRepository",
    "PlaysRepository",
]
