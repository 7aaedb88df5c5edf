"""
Commerce Service: 例外

ResourceNotFoundError → 404
InvalidArgumentError  → 400 (業務ルール違反・入力不備)

メッセージ文言はクライアントとの契約の一部。
"""


class ResourceNotFoundError(LookupError):
    def __init__(self, entity: str, entity_id) -> None:
        super().__init__(f"{entity} not found with id {entity_id}")
        self.entity = entity
        self.entity_id = entity_id


class InvalidArgumentError(ValueError):
    pass
