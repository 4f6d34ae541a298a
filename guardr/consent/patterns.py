"""
Built-in multilingual label rules, grouped by intent and language.

Each family maps a language tag to anchored regular expressions
matched against a normalised label (whitespace collapsed, edges
trimmed).  Matching is case-insensitive.  Family order inside an
intent does not matter; the classifier fixes the order across
intents.
"""

from __future__ import annotations

import functools
import re

from guardr.models import labels

Intent = labels.Intent

# ============================================================================
# Deny
# ============================================================================

DENY_FAMILIES: dict[str, tuple[str, ...]] = {
    "en-direct": (
        r"^deny( all)?$",
        r"^reject( all)?$",
        r"^refuse( all)?$",
        r"^decline( all)?$",
        r"^object( all)?$",
        r"^object to all$",
        r"^disagree( all)?$",
    ),
    "en-contextual": (
        r"^no[,.]?\s*thanks?$",
        r"^no thank you$",
        r"^skip$",
        r"^dismiss$",
        r"^not now$",
        r"^maybe later$",
        r"^later$",
    ),
    "en-essential": (
        r"^(only|just)\s*(necessary|essential|required|functional)(\s*cookies?)?(\s*only)?$",
        r"^(allow|use|accept)\s*(only\s*)?(necessary|essential|required|functional)(\s*cookies?)?\s*(only)?$",
        r"^necessary\s*only$",
        r"^essential\s*only$",
        r"^strictly\s*necessary$",
    ),
    "en-specific": (
        r"^reject\s+(additional|all|non-essential|optional|tracking|analytics|marketing|advertising|non-necessary)(\s*cookies?)?$",
        r"^decline\s+(additional|all|non-essential|optional|tracking|analytics|marketing)(\s*cookies?)?$",
        r"^deny\s+(additional|all|non-essential|optional)(\s*cookies?)?$",
        r"^refuse\s+(additional|all|non-essential|optional)(\s*cookies?)?$",
    ),
    "en-without": (
        r"^continue\s+without\s+(accepting|agreeing|consenting|cookies?)$",
        r"^proceed\s+without\s+(accepting|consenting)$",
        r"^browse\s+without\s+(accepting|cookies)$",
        r"^go\s+without$",
    ),
    "en-negative": (
        r"^(i\s+)?(do\s+not|don'?t)\s+(accept|consent|agree)$",
        r"^opt\s+out(\s+of\s+all)?$",
        r"^withdraw(\s+all)?(\s+consent)?$",
    ),
    "fr": (
        r"^refuser(\s+tout)?$",
        r"^tout\s+refuser$",
        r"^rejeter(\s+tout)?$",
        r"^non\s+merci$",
        r"^continuer\s+sans\s+accepter$",
        r"^décliner$",
        r"^ne\s+pas\s+accepter$",
        r"^uniquement\s+(nécessaire|essentiel)s?$",
    ),
    "de": (
        r"^ablehnen$",
        r"^alle\s+ablehnen$",
        r"^zurückweisen$",
        r"^verweigern$",
        r"^nein\s+danke$",
        r"^nur\s+(notwendige|erforderliche|essentielle)(\s*cookies?)?$",
        r"^ohne\s+akzeptieren\s+fortfahren$",
        r"^nicht\s+zustimmen$",
    ),
    "es": (
        r"^rechazar(\s+todo)?$",
        r"^rechazar\s+todas?$",
        r"^denegar$",
        r"^declinar$",
        r"^no\s+gracias$",
        r"^solo\s+(necesarias|esenciales)$",
        r"^continuar\s+sin\s+aceptar$",
        r"^no\s+aceptar$",
    ),
    "it": (
        r"^rifiuta(\s+tutto)?$",
        r"^rifiutare(\s+tutt[oi])?$",
        r"^nega$",
        r"^declina$",
        r"^no\s+grazie$",
        r"^solo\s+(necessari|essenziali)$",
        r"^continua\s+senza\s+accettare$",
        r"^non\s+accettare$",
    ),
    "pt": (
        r"^rejeitar(\s+tudo)?$",
        r"^recusar(\s+tudo)?$",
        r"^negar$",
        r"^não\s+obrigad[oa]$",
        r"^apenas\s+(necessários|essenciais)$",
        r"^continuar\s+sem\s+aceitar$",
        r"^não\s+aceitar$",
    ),
    "nl": (
        r"^afwijzen$",
        r"^weigeren$",
        r"^alles\s+afwijzen$",
        r"^nee\s+bedankt$",
        r"^alleen\s+(noodzakelijke|essentiële)(\s*cookies?)?$",
        r"^niet\s+accepteren$",
        r"^doorgaan\s+zonder\s+te\s+accepteren$",
    ),
    "da": (
        r"^afvis(\s+alle)?$",
        r"^nej\s+tak$",
        r"^kun\s+(nødvendige|essentielle)$",
        r"^fortsæt\s+uden\s+at\s+acceptere$",
    ),
    "sv": (
        r"^avvisa(\s+alla)?$",
        r"^nej\s+tack$",
        r"^endast\s+(nödvändiga|väsentliga)$",
        r"^fortsätt\s+utan\s+att\s+acceptera$",
    ),
    "no": (
        r"^avvis(\s+alle)?$",
        r"^nei\s+takk$",
        r"^kun\s+(nødvendige|essensielle)$",
        r"^fortsett\s+uten\s+å\s+akseptere$",
    ),
    "fi": (
        r"^hylkää(\s+kaikki)?$",
        r"^ei\s+kiitos$",
        r"^vain\s+(välttämättömät|tarpeelliset)$",
        r"^jatka\s+hyväksymättä$",
    ),
    "pl": (
        r"^odrzuć(\s+wszystko)?$",
        r"^nie\s+dziękuję$",
        r"^tylko\s+(niezbędne|konieczne)$",
        r"^kontynuuj\s+bez\s+akceptacji$",
    ),
    "cs": (
        r"^odmítnout(\s+vše)?$",
        r"^ne\s+děkuji$",
        r"^pouze\s+(nezbytné|nutné)$",
    ),
    "ro": (
        r"^respinge(\s+tot)?$",
        r"^nu\s+mulțumesc$",
        r"^doar\s+(necesare|esențiale)$",
    ),
    "el": (
        r"^απόρριψη(\s+όλων)?$",
        r"^όχι\s+ευχαριστώ$",
        r"^μόνο\s+(απαραίτητα|αναγκαία)$",
    ),
    "hu": (
        r"^elutasít$",
        r"^mindent\s+elutasít$",
        r"^nem\s+köszönöm$",
        r"^csak\s+(szükséges|alapvető)$",
    ),
}

# ============================================================================
# Manage
# ============================================================================

MANAGE_FAMILIES: dict[str, tuple[str, ...]] = {
    "en-manage": (
        r"^manage(\s+cookies?)?(\s+(preferences?|settings?|choices?|options?))?$",
        r"^customi[sz]e(\s+cookies?)?(\s+(preferences?|settings?|choices?))?$",
        r"^settings?$",
        r"^preferences?$",
        r"^options?$",
        r"^choices?$",
        r"^cookie\s+(settings?|preferences?|options?|choices?)$",
        r"^privacy\s+(settings?|preferences?|options?)$",
    ),
    "en-learn": (
        r"^learn\s+more$",
        r"^more\s+(information|info|details|options?)$",
        r"^show\s+(more|details|options?|purposes|vendors?|partners?)$",
        r"^view\s+(cookie\s*)?(settings?|preferences?|details?|options?)$",
        r"^see\s+(details|options)$",
        r"^details?$",
    ),
    "en-click": (
        r"^click\s+here$",
        r"^click\s+here\s+to\s+(manage|customi[sz]e|change|update)$",
        r"^click\s+for\s+(more|details|options)$",
        r"^here$",
    ),
    "en-edit": (
        r"^change(\s+my)?(\s+(settings?|preferences?|choices?))?$",
        r"^edit(\s+(settings?|preferences?))?$",
        r"^modify(\s+(settings?|preferences?))?$",
        r"^adjust(\s+(settings?|preferences?))?$",
    ),
    "en-advanced": (
        r"^advanced\s+(settings?|options?)$",
        r"^granular\s+control$",
        r"^detailed\s+(settings?|preferences?)$",
        r"^individual\s+(settings?|preferences?)$",
    ),
    "fr": (
        r"^gérer(\s+(les\s+)?cookies?)?(\s+(mes\s+)?(préférences?|paramètres?|choix))?$",
        r"^personnaliser(\s+(les\s+)?cookies?)?$",
        r"^paramètres?$",
        r"^préférences?$",
        r"^en\s+savoir\s+plus$",
        r"^plus\s+d'?options?$",
        r"^cliquez\s+ici$",
        r"^modifier(\s+(les\s+)?paramètres?)?$",
    ),
    "de": (
        r"^verwalten$",
        r"^cookie(-|\s+)?einstellungen$",
        r"^einstellungen(\s+verwalten)?$",
        r"^präferenzen$",
        r"^anpassen$",
        r"^mehr\s+(erfahren|informationen?)$",
        r"^hier\s+klicken$",
        r"^optionen$",
        r"^ändern$",
    ),
    "es": (
        r"^administrar(\s+cookies?)?(\s+(preferencias?|configuración))?$",
        r"^gestionar(\s+cookies?)?$",
        r"^personalizar(\s+cookies?)?$",
        r"^configuración$",
        r"^preferencias?$",
        r"^más\s+(información|opciones)$",
        r"^saber\s+más$",
        r"^haz\s+clic\s+aquí$",
        r"^opciones?$",
    ),
    "it": (
        r"^gestisci(\s+(i\s+)?cookies?)?(\s+(preferenze|impostazioni))?$",
        r"^personalizza(\s+(i\s+)?cookies?)?$",
        r"^impostazioni$",
        r"^preferenze$",
        r"^maggiori\s+informazioni$",
        r"^più\s+opzioni$",
        r"^clicca\s+qui$",
        r"^opzioni$",
    ),
    "pt": (
        r"^gerenciar(\s+cookies?)?(\s+(preferências?|configurações?))?$",
        r"^personalizar(\s+cookies?)?$",
        r"^configurações?$",
        r"^preferências?$",
        r"^saber\s+mais$",
        r"^mais\s+(informações?|opções)$",
        r"^clique\s+aqui$",
        r"^opções?$",
    ),
    "nl": (
        r"^beheren(\s+cookies?)?(\s+voorkeuren?)?$",
        r"^aanpassen$",
        r"^instellingen$",
        r"^voorkeuren$",
        r"^meer\s+(informatie|opties)$",
        r"^klik\s+hier$",
        r"^opties$",
    ),
    "multi": (
        r"^(zarządzaj|spravovat|gestionare)$",
        r"^(ajustes|nastavení|inställningar|indstillinger|innstillinger|asetukset|ustawienia)$",
        r"^(предпочтения|настройки)$",
    ),
}

# ============================================================================
# Confirm
# ============================================================================

CONFIRM_FAMILIES: dict[str, tuple[str, ...]] = {
    "en": (
        r"^save(\s+(&|and)\s+exit)?(\s+my)?(\s+(preferences?|choices?|settings?|selection))?$",
        r"^save\s+(&|and)\s+close$",
        r"^confirm(\s+my)?(\s+(choices?|selection|preferences?|settings?))?$",
        r"^(accept|allow)(\s+my)?\s+(selection|choices?|preferences?)$",
        r"^apply(\s+settings?)?$",
        r"^update(\s+(preferences?|settings?))?$",
        r"^submit$",
        r"^done$",
        r"^got\s+it$",
        r"^close$",
        r"^(ok|okay)$",
        r"^continue$",
        r"^proceed$",
    ),
    "fr": (
        r"^enregistrer(\s+(mes\s+)?(choix|préférences?))?$",
        r"^valider(\s+(mes\s+)?choix)?$",
        r"^confirmer(\s+(mes\s+)?choix)?$",
        r"^appliquer$",
        r"^continuer$",
        r"^fermer$",
    ),
    "de": (
        r"^(auswahl\s+)?speichern$",
        r"^auswahl\s+(bestätigen|erlauben)$",
        r"^bestätigen$",
        r"^übernehmen$",
        r"^anwenden$",
        r"^weiter$",
        r"^fortfahren$",
        r"^schließen$",
    ),
    "es": (
        r"^guardar(\s+(mis\s+)?(preferencias?|opciones|selección))?$",
        r"^confirmar(\s+(mis\s+)?(preferencias?|selección))?$",
        r"^aplicar$",
        r"^continuar$",
        r"^cerrar$",
    ),
    "it": (
        r"^salva(re)?(\s+(le\s+mie\s+)?(preferenze|impostazioni|scelte))?$",
        r"^confermare?(\s+(le\s+mie\s+)?scelte)?$",
        r"^applica(re)?$",
        r"^continua(re)?$",
        r"^chiudi(re)?$",
    ),
    "pt": (
        r"^salvar(\s+(minhas\s+)?(preferências?|opções))?$",
        r"^guardar(\s+(as\s+)?(minhas\s+)?(preferências?|opções))?$",
        r"^confirmar$",
        r"^aplicar$",
        r"^continuar$",
        r"^fechar$",
    ),
    "nl": (
        r"^(keuze\s+)?opslaan$",
        r"^bevestigen$",
        r"^toepassen$",
        r"^doorgaan$",
        r"^sluiten$",
    ),
}

# ============================================================================
# Accept (never executed; classified so it can be avoided)
# ============================================================================

ACCEPT_FAMILIES: dict[str, tuple[str, ...]] = {
    "en": (
        r"^accept(\s+all)?(\s+cookies?)?$",
        r"^accept\s+(and|&)\s+(close|continue)$",
        r"^agree(\s+(and|&)\s+(close|continue|proceed))?$",
        r"^(i\s+)?agree(\s+to\s+all)?$",
        r"^allow(\s+all)?(\s+cookies?)?$",
        r"^consent$",
        r"^(i\s+)?understand$",
        r"^yes(\s*,)?\s*(i\s+)?(accept|agree|allow)$",
    ),
    "fr": (
        r"^accepter(\s+tout)?$",
        r"^tout\s+accepter$",
        r"^accepter\s+et\s+(fermer|continuer)$",
        r"^autoriser(\s+tout)?$",
        r"^j'?accepte$",
        r"^d'?accord$",
    ),
    "de": (
        r"^akzeptieren$",
        r"^alle\s+akzeptieren$",
        r"^alle\s+(zulassen|erlauben)$",
        r"^zustimmen$",
        r"^einverstanden$",
        r"^ich\s+stimme\s+zu$",
    ),
    "es": (
        r"^aceptar(\s+todo)?$",
        r"^aceptar\s+todas?$",
        r"^permitir(\s+todo)?$",
        r"^estoy\s+de\s+acuerdo$",
        r"^de\s+acuerdo$",
    ),
    "it": (
        r"^accetta(re)?(\s+tutt[oi])?$",
        r"^consenti(re)?$",
        r"^autorizza(re)?$",
        r"^sono\s+d'?accordo$",
    ),
    "pt": (
        r"^aceitar(\s+tudo)?$",
        r"^aceitar\s+todos$",
        r"^permitir(\s+tudo)?$",
        r"^concordo$",
        r"^estou\s+de\s+acordo$",
    ),
    "nl": (
        r"^accepteren$",
        r"^alles\s+accepteren$",
        r"^toestaan$",
        r"^akkoord$",
        r"^ik\s+ga\s+akkoord$",
    ),
}

# ============================================================================
# Exclusion guards
# ============================================================================

# "Accept selection" / "Allow my choices" confirm a customised state.
ACCEPT_EXCLUSION_RE = re.compile(r"\b(selection|my\s+(choices?|preferences?|settings?))\b", re.IGNORECASE)

# "Do not reject" is not a rejection.
DENY_NEGATION_RE = re.compile(r"\b(do\s+not|don'?t|never)\s+(reject|deny|decline|refuse)\b", re.IGNORECASE)

# Fixed priority across intents.
FAMILY_ORDER: tuple[tuple[labels.Intent, dict[str, tuple[str, ...]]], ...] = (
    (Intent.DENY, DENY_FAMILIES),
    (Intent.CONFIRM, CONFIRM_FAMILIES),
    (Intent.MANAGE, MANAGE_FAMILIES),
    (Intent.ACCEPT, ACCEPT_FAMILIES),
)


@functools.cache
def builtin_rules() -> tuple[labels.PatternRule, ...]:
    """Compile every built-in family in priority order."""
    rules: list[labels.PatternRule] = []
    for intent, families in FAMILY_ORDER:
        for language, expressions in families.items():
            for expr in expressions:
                rules.append(
                    labels.PatternRule(
                        matcher=re.compile(expr, re.IGNORECASE),
                        language=language,
                        intent=intent,
                    )
                )
    return tuple(rules)


def is_excluded(intent: labels.Intent, label: str) -> bool:
    """Whether a guard vetoes *intent* for *label*."""
    match intent:
        case Intent.ACCEPT:
            return ACCEPT_EXCLUSION_RE.search(label) is not None
        case Intent.DENY:
            return DENY_NEGATION_RE.search(label) is not None
        case Intent.MANAGE | Intent.CONFIRM | Intent.UNKNOWN:
            return False


def text_to_pattern(normalized_text: str) -> str:
    """Build a word-bounded, whitespace-flexible expression for a label.

    ``"nope all"`` becomes ``\\bnope\\s+all\\b``.
    """
    words = [re.escape(w) for w in normalized_text.split()]
    return r"\b" + r"\s+".join(words) + r"\b"
