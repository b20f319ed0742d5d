class HealthState:
    """
    Tracks the health state of the checker.
    """

    def __init__(self):
        self.last_fetch_ok: bool = False


health = HealthState()
