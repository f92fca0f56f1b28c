"""Application Use Cases — Appliances."""

from energy.application.ownership import get_owned
from energy.models import Appliance


def list_appliances(user):
    return Appliance.objects.filter(owner=user).order_by("-id")


def create_appliance(user, data):
    return Appliance.objects.create(
        owner=user,
        name=data["name"],
        description=data.get("description") or None,
        estimated_power=data.get("estimated_power"),
    )


def update_appliance(user, appliance_id, data):
    appliance = get_owned(Appliance, user, appliance_id)
    for field in ("name", "description", "estimated_power"):
        if field in data:
            setattr(appliance, field, data[field])
    appliance.save()
    return appliance


def delete_appliance(user, appliance_id):
    # Records keep their snapshot; the appliance link is nulled by the FK.
    get_owned(Appliance, user, appliance_id).delete()
