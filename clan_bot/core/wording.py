"""French texts shared by several cogs and engines."""

from __future__ import annotations

import random
from typing import Sequence


ADMIN_MENTION = "<@313006042340524033>"

GENERIC_ERROR = (
    "Une erreur est survenue, merci de réessayer plus tard. "
    f"Si le problème persiste merci de contacter {ADMIN_MENTION}"
)
DATABASE_ERROR = (
    "Il y a un problème avec la base de données, merci de réessayer plus tard. "
    f"Si le problème persist merci de contacter {ADMIN_MENTION}"
)
WARGAMING_UNAVAILABLE = (
    "Le serveur de Wargaming semble indisponible pour le moment, merci de réessayer plus tard. "
    f"Si le problème persiste merci de contacter {ADMIN_MENTION}"
)
TRIVIA_DISABLED = "Le jeu trivia n'est pas activé par l'administrateur du bot."
WATCHER_DISABLED = "L'observateur n'est pas activé par l'administrateur du bot."

AUTO_REPLIES: Sequence[str] = (
    "Évolue un peu <@{id}> !",
    "<@{id}> pourquoi ne pas réfléchir un peu plus avant de poser des questions ?",
    "Tout le monde peut faire des erreurs, mais les tiennes <@{id}> sont assez spéciales.",
    "As-tu déjà essayé de comprendre les choses par toi-même <@{id}> ?",
    "Intéressant <@{id}>, tu as réussi à trouver la solution la plus compliquée.",
    "Bravo <@{id}>, tu viens de perdre une occasion de te taire.",
    "<@{id}> tu es vraiment doué pour dire des évidences.",
    "Si seulement tu pouvais être aussi rapide que tu l'es pour dire des bêtises <@{id}>.",
    "De façon polie <@{id}>, tais-toi !",
    "<@{id}> t'as pas fini de brill… non, en fait, oublie.",
    "<@{id}> génie incompris, comme d'hab.",
    "Quelle surprise <@{id}>, tu dis quelque chose d'inutile.",
    "J'espère que ça t'a demandé beaucoup d'effort intellectuel <@{id}>.",
    "Tu veux un trophée pour ton intelligence exceptionnelle <@{id}> ?",
    "<@{id}>, vas-y, continue de parler pour rien dire.",
    "C'est impressionnant, <@{id}>, à quel point tu me fais perdre mon temps.",
    "<@{id}>, si seulement tu pouvais te taire un peu plus souvent.",
    "<@{id}>, j'ai connu des idées plus brillantes venant de gamins de maternelle.",
)


def random_auto_reply(user_id: int, rng: random.Random | None = None) -> str:
    """Pick one of the canned auto-reply sentences for ``user_id``."""

    chooser = rng or random
    return chooser.choice(AUTO_REPLIES).format(id=user_id)


__all__ = [
    "ADMIN_MENTION",
    "AUTO_REPLIES",
    "DATABASE_ERROR",
    "GENERIC_ERROR",
    "TRIVIA_DISABLED",
    "WARGAMING_UNAVAILABLE",
    "WATCHER_DISABLED",
    "random_auto_reply",
]
