from kiosk_pop.routers import notifications, proof_of_play

__all__ = [
    "notifications",
    "proof_of_play",
]
