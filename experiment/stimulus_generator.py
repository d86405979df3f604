import random
from typing import Dict, List, Optional, Sequence

from config.settings import StimulusConfig
from data.models import LetterStimulus, Stimulus


CONGRUENT_SHARE = 0.25

_DEFAULT_STIMULI = StimulusConfig()


def build_key_mapping(stimuli: StimulusConfig = _DEFAULT_STIMULI) -> Dict[str, str]:
    return dict(stimuli.key_mappings)


def generate_stimulus(
    colors: Sequence[str],
    words: Sequence[str],
    congruent_probability: float,
    rng: Optional[random.Random] = None,
    mapping: Optional[Dict[str, str]] = None,
) -> Stimulus:
    """
    Один stroop-стимул.

    - с вероятностью congruent_probability цвет совпадает со словом
    - иначе цвет выбираем равномерно из colors без цвета слова
    - correct_response = клавиша цвета, которым нарисовано слово
    """
    rng = rng or random.Random()
    mapping = mapping or build_key_mapping()

    word = rng.choice(list(words))
    word_color = word.lower()

    is_congruent = rng.random() < congruent_probability
    if is_congruent:
        color = word_color
    else:
        incongruent_colors = [c for c in colors if c != word_color]
        if not incongruent_colors:
            raise ValueError(f"no incongruent color available for word {word!r}")
        color = rng.choice(incongruent_colors)

    return Stimulus(
        word=word,
        color=color,
        congruent=is_congruent,
        correct_response=mapping[color],
    )


def shuffle(items: List, rng: random.Random) -> List:
    # Fisher–Yates: каждая перестановка равновероятна
    shuffled = list(items)
    for i in range(len(shuffled) - 1, 0, -1):
        j = rng.randint(0, i)
        shuffled[i], shuffled[j] = shuffled[j], shuffled[i]
    return shuffled


def generate_block(
    n_trials: int,
    colors: Sequence[str],
    words: Sequence[str],
    rng: Optional[random.Random] = None,
    mapping: Optional[Dict[str, str]] = None,
    congruent_share: float = CONGRUENT_SHARE,
) -> List[Stimulus]:
    """
    Блок stroop-стимулов: ровно floor(n * congruent_share) конгруэнтных,
    остальные неконгруэнтные, порядок перемешан.
    """
    rng = rng or random.Random()
    # word.lower() должен быть в палитре, иначе конгруэнтный стимул не нарисовать
    usable_words = [w for w in words if w.lower() in colors]
    if not usable_words and n_trials > 0:
        raise ValueError("no word names a color of the palette")

    n_congruent = int(n_trials * congruent_share)
    n_incongruent = n_trials - n_congruent

    stimuli: List[Stimulus] = []
    for _ in range(n_congruent):
        stimuli.append(generate_stimulus(colors, usable_words, 1.0, rng, mapping))
    for _ in range(n_incongruent):
        stimuli.append(generate_stimulus(colors, usable_words, 0.0, rng, mapping))

    return shuffle(stimuli, rng)


def generate_practice_block(
    n_trials: int = 5,
    stimuli: StimulusConfig = _DEFAULT_STIMULI,
    rng: Optional[random.Random] = None,
) -> List[Stimulus]:
    # на тренировке только базовые цвета
    return generate_block(
        n_trials, stimuli.colors, stimuli.words, rng, build_key_mapping(stimuli), stimuli.congruent_probability
    )


def generate_recall_sequence(
    n_trials: int,
    letters: Sequence[str],
    n_back: int = 2,
    repeat_probability: float = 0.3,
    rng: Optional[random.Random] = None,
) -> List[LetterStimulus]:
    rng = rng or random.Random()
    sequence: List[str] = []
    for i in range(n_trials):
        if i >= n_back and rng.random() < repeat_probability:
            sequence.append(sequence[i - n_back])
        else:
            sequence.append(rng.choice(list(letters)))

    # target считаем по факту: случайная буква тоже может совпасть с n-back
    return [
        LetterStimulus(letter=letter, is_target=(i >= n_back and letter == sequence[i - n_back]))
        for i, letter in enumerate(sequence)
    ]


def generate_inhibition_block(
    n_trials: int,
    go_letter: str = "X",
    nogo_letters: Sequence[str] = ("O", "M", "N", "P"),
    go_probability: float = 0.7,
    rng: Optional[random.Random] = None,
) -> List[LetterStimulus]:
    rng = rng or random.Random()
    block: List[LetterStimulus] = []
    for _ in range(n_trials):
        if rng.random() < go_probability:
            block.append(LetterStimulus(letter=go_letter, is_go=True))
        else:
            block.append(LetterStimulus(letter=rng.choice(list(nogo_letters)), is_go=False))
    return block


def valid_keys(colors: Sequence[str], mapping: Optional[Dict[str, str]] = None) -> List[str]:
    mapping = mapping or build_key_mapping()
    return [mapping[c] for c in colors]


def color_from_key(key: str, mapping: Optional[Dict[str, str]] = None) -> Optional[str]:
    mapping = mapping or build_key_mapping()
    for color, mapped_key in mapping.items():
        if mapped_key == key:
            return color
    return None
