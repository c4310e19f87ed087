from shopbuilder.models.schemas.page import ComponentInstance

APP_KEY = "demo.myshopify.com"


def make_instance(kind_id, params=None, position=0, instance_id=None):
    return ComponentInstance(
        instance_id=instance_id or f"{kind_id}-{position}",
        kind_id=kind_id,
        params=params or {},
        position=position,
    )
