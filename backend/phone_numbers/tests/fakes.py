from phone_numbers.services.providers import MockNumbersProvider


class RecordingProvider(MockNumbersProvider):
    """Mock provider that remembers every allocation and release."""

    def __init__(self, purchase_error=None):
        self.purchase_error = purchase_error
        self.purchased = []
        self.released = []

    def purchase(self, phone_number, *, friendly_name, webhooks):
        if self.purchase_error is not None:
            raise self.purchase_error
        allocated = super().purchase(phone_number, friendly_name=friendly_name, webhooks=webhooks)
        self.purchased.append(allocated)
        return allocated

    def release(self, sid):
        self.released.append(sid)
