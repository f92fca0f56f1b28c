"""Owner scoping and per-user write serialization shared by the use cases."""

from energy.domain.exceptions import NotFound
from energy.models import User


def lock_owner(user):
    """
    Lock the owner's User row for the rest of the current transaction.

    Every multi-row write of a user takes this lock first, so concurrent
    check-then-write sequences of the same user run one after another.
    Must be called inside transaction.atomic().
    """
    return User.objects.select_for_update().get(pk=user.pk)


def get_owned(model, user, pk):
    try:
        return model.objects.get(pk=pk, owner=user)
    except model.DoesNotExist:
        raise NotFound()
