from typing import Optional

import pygame

from experiment.tasks.inhibition import GO_KEY


# кириллическая раскладка: та же физическая клавиша
CYRILLIC_TO_LATIN = {
    "к": "r",
    "и": "b",
    "п": "g",
    "н": "y",
    "з": "p",
    "щ": "o",
    "а": "f",
    "о": "j",
}


def read_response_key(event: pygame.event.Event) -> Optional[str]:
    """
    KEYDOWN -> имя клавиши ответа ("r", "f", "space", ...).
    Проверку, подходит ли клавиша к текущему trial-у, делает policy.
    """
    if event.type != pygame.KEYDOWN:
        return None
    if event.key == pygame.K_SPACE:
        return GO_KEY
    char = (event.unicode or "").lower()
    if char in CYRILLIC_TO_LATIN:
        return CYRILLIC_TO_LATIN[char]
    if len(char) == 1 and char.isalpha() and char.isascii():
        return char
    name = pygame.key.name(event.key)
    if len(name) == 1 and name.isalpha():
        return name
    return None
