import logging

from django.conf import settings
from django.db import DatabaseError, transaction
from django.db.models import F

from .exceptions import StorageUnavailable
from .models import RegistrationSequence

logger = logging.getLogger(__name__)


class SequenceAllocator:
    """
    Hands out registration sequence numbers, one counter row per year.

    ``next`` joins the caller's transaction when there is one, so the number
    and the registration that uses it commit or roll back together. Numbers
    are never reused; gaps are allowed.
    """

    def next(self, year):
        try:
            with transaction.atomic():
                RegistrationSequence.objects.get_or_create(year=year)
                # The UPDATE takes the row lock until the surrounding transaction ends
                RegistrationSequence.objects.filter(year=year).update(last_issued=F('last_issued') + 1)
                return RegistrationSequence.objects.values_list('last_issued', flat=True).get(year=year)
        except DatabaseError as e:
            logger.error(f"Sequence counter for {year} unavailable: {e}")
            raise StorageUnavailable('Registration number could not be allocated') from e

    def registration_number(self, year, sequence):
        width = getattr(settings, 'REGISTRATION_NUMBER_WIDTH', 4)
        prefix = getattr(settings, 'REGISTRATION_NUMBER_PREFIX', 'SMIT')
        return f"{prefix}{year}{sequence:0{width}d}"
