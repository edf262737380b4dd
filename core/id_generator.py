import random

# Двухзначные коды сущностей
TYPE_POSTFIX = {
    "users": 1,
    "profiles": 2,
    "likes": 4,
    "matches": 5,
    "conversations": 6,
    "messages": 7,
    "blocked_users": 8,
    "match_scores": 9,
}


def generate_random_id(entity: str) -> int:
    """Возвращает id: 12 случайных цифр + 2-значный постфикс сущности."""
    if entity not in TYPE_POSTFIX:
        raise ValueError(f"Unknown entity for ID generation: {entity}")
    rand12 = random.randint(0, 999_999_999_999)
    postfix = TYPE_POSTFIX[entity]
    return rand12 * 100 + postfix
