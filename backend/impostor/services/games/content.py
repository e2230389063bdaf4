"""Static content: avatars, colors and word packs."""

import random
from typing import Dict, List, Optional

AVATARS = [
    '🦊', '🐸', '🦁', '🐼', '🐙', '🦄', '🐲', '🦜', '🐺', '🦈', '🎃', '🤖', '🛸', '🌵', '🍄',
]

AVATAR_COLORS = [
    '#a78bfa', '#f472b6', '#fb923c', '#34d399', '#60a5fa',
    '#facc15', '#f87171', '#2dd4bf', '#a3e635', '#c084fc',
    '#fb7185', '#38bdf8', '#fbbf24', '#4ade80', '#e879f9',
]

DIFFICULTIES = ('easy', 'medium', 'hard')

WORD_PACKS: Dict[str, List[dict]] = {
    'es': [
        {
            'id': 'animals',
            'emoji': '🐾',
            'words': {
                'easy': ['perro', 'gato', 'vaca', 'caballo', 'cerdo', 'gallina', 'pato', 'oso', 'león', 'tigre'],
                'medium': ['delfín', 'canguro', 'jirafa', 'cocodrilo', 'pingüino', 'flamenco', 'mapache', 'zorro', 'lobo', 'búho'],
                'hard': ['ornitorrinco', 'axolote', 'tapir', 'ñu', 'okapi', 'quokka', 'narval', 'dugongo'],
            },
        },
        {
            'id': 'food',
            'emoji': '🍽️',
            'words': {
                'easy': ['pizza', 'taco', 'sopa', 'arroz', 'pan', 'leche', 'queso', 'huevo', 'pollo', 'pasta'],
                'medium': ['enchilada', 'paella', 'ceviche', 'guacamole', 'empanada', 'gazpacho', 'mole', 'churro'],
                'hard': ['escargot', 'trufa', 'caviar', 'kimchi', 'tempura', 'prosciutto', 'tiramisu', 'bacalao'],
            },
        },
        {
            'id': 'places',
            'emoji': '🗺️',
            'words': {
                'easy': ['playa', 'escuela', 'hospital', 'parque', 'cine', 'tienda', 'iglesia', 'museo'],
                'medium': ['aeropuerto', 'biblioteca', 'estadio', 'zoológico', 'gimnasio', 'castillo'],
                'hard': ['observatorio', 'faro', 'submarino', 'catacumbas', 'laboratorio', 'acueducto'],
            },
        },
    ],
    'en': [
        {
            'id': 'animals',
            'emoji': '🐾',
            'words': {
                'easy': ['dog', 'cat', 'cow', 'horse', 'pig', 'chicken', 'duck', 'bear', 'lion', 'tiger'],
                'medium': ['dolphin', 'kangaroo', 'giraffe', 'crocodile', 'penguin', 'flamingo', 'raccoon', 'fox', 'wolf', 'owl'],
                'hard': ['platypus', 'axolotl', 'tapir', 'wildebeest', 'okapi', 'quokka', 'narwhal', 'dugong'],
            },
        },
        {
            'id': 'food',
            'emoji': '🍽️',
            'words': {
                'easy': ['pizza', 'taco', 'soup', 'rice', 'bread', 'milk', 'cheese', 'egg', 'chicken', 'pasta', 'banana'],
                'medium': ['enchilada', 'paella', 'ceviche', 'guacamole', 'empanada', 'gazpacho', 'pretzel', 'churro'],
                'hard': ['escargot', 'truffle', 'caviar', 'kimchi', 'tempura', 'prosciutto', 'tiramisu', 'haggis'],
            },
        },
        {
            'id': 'places',
            'emoji': '🗺️',
            'words': {
                'easy': ['beach', 'school', 'hospital', 'park', 'cinema', 'store', 'church', 'museum'],
                'medium': ['airport', 'library', 'stadium', 'zoo', 'gym', 'castle'],
                'hard': ['observatory', 'lighthouse', 'submarine', 'catacombs', 'laboratory', 'aqueduct'],
            },
        },
    ],
}


def pack_summaries(language: str) -> List[dict]:
    packs = WORD_PACKS.get(language, [])
    return [
        {'id': p['id'], 'emoji': p['emoji'], 'counts': {d: len(p['words'][d]) for d in DIFFICULTIES}}
        for p in packs
    ]


def random_word(language: str, pack_id: str, difficulty: str, rng=random) -> Optional[str]:
    for pack in WORD_PACKS.get(language, []):
        if pack['id'] == pack_id:
            words = pack['words'].get(difficulty) or []
            return rng.choice(words) if words else None
    return None


def pick_avatar(used: set, preferred: Optional[str] = None) -> str:
    if preferred in AVATARS and preferred not in used:
        return preferred
    for avatar in AVATARS:
        if avatar not in used:
            return avatar
    return AVATARS[len(used) % len(AVATARS)]


def pick_color(used: set) -> str:
    for color in AVATAR_COLORS:
        if color not in used:
            return color
    return AVATAR_COLORS[len(used) % len(AVATAR_COLORS)]
