"""
Genre reference data.

Contains the canonical genre catalog, the hand-curated adjacency graph used for
blind-spot suggestions, and the probe list used to reconstruct genres through
search when artist objects come back without tags.
"""

from typing import Dict, Iterable, List, Optional, Set

# Canonical catalog (upstream seed-genre vocabulary plus a few scene labels
# that appear in the adjacency graph)
GENRE_CATALOG = [
    "acoustic", "afrobeat", "alt-rock", "alternative", "ambient", "anime",
    "black-metal", "bluegrass", "blues", "bossa nova", "bossanova", "brazil",
    "breakbeat", "british", "cantopop", "chicago-house", "children", "chill",
    "classical", "club", "comedy", "country", "dance", "dancehall",
    "death-metal", "deep-house", "detroit-techno", "disco", "disney",
    "dream-pop", "drum-and-bass", "dub", "dubstep", "edm", "electro",
    "electronic", "emo", "folk", "forro", "french", "funk", "garage", "german",
    "gospel", "goth", "grindcore", "groove", "grunge", "guitar", "happy",
    "hard-rock", "hardcore", "hardstyle", "heavy-metal", "hip-hop",
    "honky-tonk", "house", "idm", "indian", "indie", "indie-pop", "industrial",
    "iranian", "j-dance", "j-idol", "j-pop", "j-rock", "jazz", "k-pop", "kids",
    "latin", "latino", "lo-fi", "malay", "mandopop", "metal", "metal-misc",
    "metalcore", "minimal-techno", "mpb", "neo-soul", "new wave", "new-age",
    "opera", "pagode", "party", "philippines-opm", "piano", "pop", "pop-film",
    "post-dubstep", "post-punk", "power-pop", "progressive-house",
    "psych-rock", "punk", "punk-rock", "r-n-b", "rainy-day", "reggae",
    "reggaeton", "road-trip", "rock", "rock-n-roll", "rockabilly", "romance",
    "sad", "salsa", "samba", "sertanejo", "shoegaze", "show-tunes",
    "singer-songwriter", "ska", "sleep", "songwriter", "soul", "soundtracks",
    "spanish", "study", "summer", "swedish", "synth-pop", "tango", "techno",
    "trance", "trip-hop", "turkish", "work-out", "world-music",
]

# Hand-curated: if you listen to genre A, genre B is a natural next step
GENRE_ADJACENCY: Dict[str, List[str]] = {
    "rock": ["alt-rock", "indie", "grunge", "post-punk", "garage"],
    "alt-rock": ["indie", "shoegaze", "post-punk", "grunge"],
    "indie": ["indie-pop", "shoegaze", "lo-fi", "folk"],
    "indie-pop": ["synth-pop", "dream-pop", "indie", "new wave"],
    "pop": ["synth-pop", "indie-pop", "dance", "disco"],
    "hip-hop": ["r-n-b", "trip-hop", "soul", "afrobeat"],
    "r-n-b": ["neo-soul", "soul", "hip-hop", "funk"],
    "electronic": ["house", "ambient", "synth-pop", "trip-hop", "dance"],
    "house": ["disco", "dance", "electronic", "funk"],
    "jazz": ["neo-soul", "bossa nova", "soul", "blues"],
    "soul": ["neo-soul", "funk", "r-n-b", "blues"],
    "folk": ["indie", "country", "blues", "acoustic"],
    "metal": ["punk", "grunge", "alt-rock", "rock"],
    "punk": ["post-punk", "ska", "grunge", "new wave"],
    "blues": ["soul", "jazz", "folk", "funk"],
    "funk": ["soul", "disco", "afrobeat", "r-n-b"],
    "classical": ["ambient", "jazz"],
    "reggae": ["ska", "afrobeat", "funk"],
    "country": ["folk", "blues", "acoustic"],
    "ambient": ["electronic", "lo-fi", "classical", "trip-hop"],
    "disco": ["funk", "house", "dance", "pop"],
    "shoegaze": ["dream-pop", "post-punk", "lo-fi", "ambient"],
    "post-punk": ["new wave", "shoegaze", "punk", "synth-pop"],
    "synth-pop": ["new wave", "electronic", "dance", "indie-pop"],
    "neo-soul": ["soul", "r-n-b", "jazz", "funk"],
    "trip-hop": ["electronic", "ambient", "hip-hop"],
    "lo-fi": ["indie", "ambient", "shoegaze"],
    "afrobeat": ["funk", "reggae", "hip-hop"],
    "ska": ["punk", "reggae"],
    "grunge": ["alt-rock", "punk", "rock"],
    "new wave": ["post-punk", "synth-pop", "indie-pop"],
    "dance": ["house", "electronic", "disco", "pop"],
}

# Labels probed with `genre:"<label>"` searches when artist tags are missing.
# Broad, high-recall labels first: the probe loop may stop early on time.
PROBE_GENRES = [
    "pop", "rock", "hip-hop", "indie", "electronic", "r-n-b", "jazz", "soul",
    "folk", "country", "metal", "punk", "dance", "house", "alt-rock",
    "classical", "blues", "funk", "reggae", "latin", "ambient", "techno",
    "indie-pop", "singer-songwriter", "synth-pop", "trip-hop", "disco",
    "afrobeat", "k-pop", "lo-fi",
]


def normalize_genre(label: Optional[str]) -> str:
    """Lower-case and trim a genre label."""
    if not label:
        return ""
    return " ".join(str(label).strip().lower().split())


def adjacent_genres(genre: str, adjacency: Optional[Dict[str, List[str]]] = None) -> List[str]:
    """Neighbors of `genre` in the adjacency graph (empty if unknown)."""
    graph = GENRE_ADJACENCY if adjacency is None else adjacency
    return list(graph.get(normalize_genre(genre), []))


def unknown_genres(known: Iterable[str], catalog: Optional[List[str]] = None) -> List[str]:
    """Catalog genres not present in `known`, in catalog order."""
    known_set: Set[str] = {normalize_genre(g) for g in known}
    return [g for g in (GENRE_CATALOG if catalog is None else catalog) if g not in known_set]
