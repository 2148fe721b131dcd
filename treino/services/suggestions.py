"""
Workout suggestions: prompt construction, model-output parsing and the
rule-based offline generator.

Model output is free text. `parse_workouts` never raises: when nothing
usable comes out of the text the fixed FALLBACK_WORKOUTS are returned so the
user always gets a usable program.
"""
from __future__ import annotations

import copy
import json
import logging
import re
from typing import Any, Optional

logger = logging.getLogger(__name__)

FALLBACK_WORKOUTS = [
    {
        "name": "Treino Básico",
        "description": "Treino básico gerado devido a um erro de processamento",
        "exercises": [
            {
                "name": "Agachamento",
                "sets": 3,
                "reps": "12-15",
                "rest": "60 segundos",
                "difficulty": "Iniciante",
                "muscles": ["Quadríceps", "Glúteos"],
                "execution": "Mantenha os pés na largura dos ombros, desça como se fosse sentar em uma cadeira.",
            },
            {
                "name": "Flexão de Braço",
                "sets": 3,
                "reps": "10-12",
                "rest": "60 segundos",
                "difficulty": "Iniciante",
                "muscles": ["Peito", "Tríceps"],
                "execution": "Mantenha o corpo reto, desça até que o peito quase toque o chão.",
            },
            {
                "name": "Prancha",
                "sets": 3,
                "reps": "30 segundos",
                "rest": "30 segundos",
                "difficulty": "Iniciante",
                "muscles": ["Core", "Abdômen"],
                "execution": "Mantenha o corpo reto apoiado nos antebraços e pontas dos pés.",
            },
        ],
    }
]

EXERCISE_DEFAULTS = {
    "name": "Exercício",
    "sets": 3,
    "reps": "10",
    "rest": "60 segundos",
    "difficulty": "Intermediário",
    "execution": "Sem descrição",
}

DEFAULT_WORKOUT_NAME = "Treino Personalizado"
DEFAULT_WORKOUT_DESCRIPTION = "Treino personalizado baseado na sua avaliação"

_FENCED_JSON = re.compile(r"```json\s*\n(.*?)\n?```", re.DOTALL | re.IGNORECASE)
_FENCED = re.compile(r"```\s*\n(.*?)\n?```", re.DOTALL)
_OBJECT = re.compile(r"\{.*\}", re.DOTALL)


# ------------------------------
# Prompt
# ------------------------------
def _join(values, empty):
    if not values:
        return empty
    if isinstance(values, str):
        return values
    return ", ".join(str(v) for v in values)


def _side(pair):
    if isinstance(pair, dict):
        return pair.get("right"), pair.get("left")
    return pair, pair


def build_assessment_prompt(assessment) -> str:
    lines = [
        "Por favor, crie 3 rotinas de treino diferentes para uma pessoa com as seguintes características:",
        f"- Altura: {_fmt(assessment.height)} cm",
        f"- Peso: {_fmt(assessment.weight)} kg",
        f"- Idade: {assessment.age or 'Não informada'} anos",
        f"- Nível de experiência: {assessment.experience_level or 'Não informado'}",
        f"- Objetivo fitness: {assessment.fitness_goal or 'Condicionamento geral'}",
        f"- Limitações de saúde: {_join(assessment.health_limitations, 'Nenhuma')}",
        f"- Equipamentos disponíveis: {_join(assessment.available_equipment, 'Equipamentos básicos')}",
        f"- Dias de treino por semana: {assessment.workout_days_per_week or 3}",
        f"- Duração de treino: {assessment.workout_duration or 60} minutos",
    ]

    measurements = assessment.body_measurements or {}
    if measurements:
        lines.append("")
        lines.append("Medidas corporais atuais:")
        single = (
            ("body_fat_percentage", "Percentual de gordura", "%"),
            ("muscle_mass", "Massa muscular", "kg"),
            ("chest", "Peitoral", "cm"),
            ("waist", "Cintura", "cm"),
            ("hips", "Quadril", "cm"),
            ("shoulders", "Ombros", "cm"),
            ("neck", "Pescoço", "cm"),
        )
        for key, label, unit in single:
            if measurements.get(key):
                lines.append(f"- {label}: {measurements[key]}{unit}")
        for key, label in (("arms", "Braços"), ("thighs", "Coxas"), ("calves", "Panturrilhas")):
            right, left = _side(measurements.get(key))
            if right or left:
                lines.append(f"- {label}: {right or '-'}cm (D) / {left or '-'}cm (E)")

    lines.append(
        """
Para cada rotina de treino, inclua:
1. Nome da rotina
2. Breve descrição e objetivo
3. Lista de exercícios, cada um com nome, séries e repetições, descanso entre
   séries, nível de dificuldade, músculos trabalhados e descrição da execução

Formate sua resposta como um objeto JSON com a seguinte estrutura:
{
  "workouts": [
    {
      "name": "Nome da Rotina 1",
      "description": "Descrição",
      "exercises": [
        {
          "name": "Nome do Exercício",
          "sets": 3,
          "reps": "10-12",
          "rest": "60 segundos",
          "difficulty": "Intermediário",
          "muscles": ["Peito", "Tríceps"],
          "execution": "Descrição da execução"
        }
      ]
    }
  ]
}"""
    )
    return "\n".join(lines)


def _fmt(value):
    if value is None:
        return "Não informado"
    number = float(value)
    return int(number) if number.is_integer() else number


# ------------------------------
# Parsing
# ------------------------------
def extract_json_candidate(text: str) -> str:
    """Fenced ```json block, then a bare fenced block, then the outermost {...}, then the text."""
    for pattern in (_FENCED_JSON, _FENCED):
        match = pattern.search(text)
        if match:
            return match.group(1)
    match = _OBJECT.search(text)
    if match:
        return match.group(0)
    return text


def _load(candidate: str) -> Any:
    attempts = [candidate]
    # prose around the JSON inside a fence
    for open_ch, close_ch in (("{", "}"), ("[", "]")):
        start, end = candidate.find(open_ch), candidate.rfind(close_ch)
        if start != -1 and end > start:
            attempts.append(candidate[start:end + 1])
    for attempt in attempts:
        try:
            return json.loads(attempt)
        except (ValueError, RecursionError):
            # RecursionError: nesting deeper than the interpreter stack
            continue
    raise ValueError("no JSON value in model output")


def normalize_exercise(exercise: dict) -> dict:
    out = dict(exercise)
    for key, default in EXERCISE_DEFAULTS.items():
        if out.get(key) in (None, ""):
            out[key] = default
    muscles = out.get("muscles")
    if isinstance(muscles, str) and muscles.strip():
        out["muscles"] = [m.strip() for m in muscles.split(",") if m.strip()]
    elif not isinstance(muscles, list) or not muscles:
        out["muscles"] = ["Não especificado"]
    return out


def normalize_workout(workout: dict) -> dict:
    exercises = workout.get("exercises")
    if not isinstance(exercises, list):
        exercises = []
    return {
        **workout,
        "name": workout.get("name") or DEFAULT_WORKOUT_NAME,
        "description": workout.get("description") or DEFAULT_WORKOUT_DESCRIPTION,
        "exercises": [normalize_exercise(e) for e in exercises if isinstance(e, dict)],
    }


def fallback_workouts() -> list[dict]:
    return copy.deepcopy(FALLBACK_WORKOUTS)


def parse_workouts(text: Optional[str]) -> tuple[list[dict], bool]:
    """
    Coerce model output into a list of workouts.

    Returns (workouts, used_fallback). Never raises.
    """
    if not text or not text.strip():
        return fallback_workouts(), True

    data = None
    for candidate in (extract_json_candidate(text), text):
        try:
            data = _load(candidate)
            break
        except ValueError:
            continue
    if data is None:
        logger.warning("could not parse model output as JSON (%d chars)", len(text))
        return fallback_workouts(), True

    if isinstance(data, list):
        data = {"workouts": data}
    if not isinstance(data, dict):
        return fallback_workouts(), True

    workouts = data.get("workouts")
    if workouts is None:
        workouts = [
            {
                "name": data.get("name") or DEFAULT_WORKOUT_NAME,
                "description": data.get("description") or DEFAULT_WORKOUT_DESCRIPTION,
                "exercises": data.get("exercises") or [],
            }
        ]
    if not isinstance(workouts, list):
        return fallback_workouts(), True

    parsed = [normalize_workout(w) for w in workouts if isinstance(w, dict)]
    parsed = [w for w in parsed if w["exercises"]]
    if not parsed:
        return fallback_workouts(), True
    return parsed, False


# ------------------------------
# Offline (rule-based) suggestions
# ------------------------------
INTENSITY = {
    "iniciante": {"sets": 3, "reps": "10-12", "rest": "60s"},
    "intermediário": {"sets": 4, "reps": "8-10", "rest": "45s"},
    "avançado": {"sets": 5, "reps": "6-8", "rest": "30s"},
}

LEVEL_ALIASES = {
    "beginner": "iniciante",
    "intermediate": "intermediário",
    "intermediario": "intermediário",
    "advanced": "avançado",
    "avancado": "avançado",
}

# (name, reps override or None, muscles)
OFFLINE_PROGRAMS = {
    "Perda de peso": [
        (
            "Treino Metabólico A",
            "Treino de circuito para queima calórica. Realize {sets} voltas com {rest} de descanso entre exercícios.",
            [
                ("Agachamento", None, ["Quadríceps", "Glúteos", "Isquiotibiais"]),
                ("Polichinelo", "30s", ["Ombros", "Core", "Quadríceps"]),
                ("Flexão de braço", None, ["Peito", "Tríceps", "Ombros"]),
                ("Mountain climber", "30s", ["Core", "Ombros", "Quadríceps"]),
                ("Abdominal", None, ["Abdômen", "Core"]),
            ],
        ),
        (
            "Treino Metabólico B",
            "Treino intervalado de alta intensidade. Realize {sets} voltas com {rest} de descanso entre exercícios.",
            [
                ("Burpee", "45s", ["Peito", "Tríceps", "Quadríceps", "Core"]),
                ("Corrida no lugar", "45s", ["Quadríceps", "Panturrilhas", "Core"]),
                ("Prancha", "45s", ["Core", "Ombros", "Abdômen"]),
                ("Pular corda", "45s", ["Panturrilhas", "Ombros", "Core"]),
                ("Agachamento com salto", "45s", ["Quadríceps", "Glúteos", "Panturrilhas"]),
            ],
        ),
    ],
    "Hipertrofia": [
        (
            "Treino de Força A",
            "Treino focado em membros superiores com {sets} séries por exercício.",
            [
                ("Supino reto", None, ["Peito", "Tríceps", "Ombros"]),
                ("Remada curvada", None, ["Costas", "Bíceps", "Antebraço"]),
                ("Desenvolvimento ombro", None, ["Ombros", "Tríceps"]),
                ("Rosca direta", None, ["Bíceps", "Antebraço"]),
                ("Tríceps corda", None, ["Tríceps"]),
            ],
        ),
        (
            "Treino de Força B",
            "Treino focado em membros inferiores com {sets} séries por exercício.",
            [
                ("Agachamento livre", None, ["Quadríceps", "Glúteos", "Isquiotibiais"]),
                ("Leg press", None, ["Quadríceps", "Glúteos"]),
                ("Stiff", None, ["Isquiotibiais", "Glúteos", "Lombar"]),
                ("Cadeira extensora", None, ["Quadríceps"]),
                ("Panturrilha em pé", None, ["Panturrilhas"]),
            ],
        ),
    ],
    "Condicionamento": [
        (
            "Treino Funcional",
            "Treino de corpo inteiro com {sets} séries e {rest} de descanso.",
            [
                ("Agachamento", None, ["Quadríceps", "Glúteos"]),
                ("Flexão de braço", None, ["Peito", "Tríceps"]),
                ("Afundo", None, ["Quadríceps", "Glúteos"]),
                ("Remada com elástico", None, ["Costas", "Bíceps"]),
                ("Prancha", "30s", ["Core", "Abdômen"]),
            ],
        ),
    ],
}

GOAL_KEYWORDS = (
    ("Perda de peso", ("perda", "peso", "emagrec", "gordura", "weight", "fat")),
    ("Hipertrofia", ("hipertrofia", "massa", "músculo", "muscle", "força", "strength")),
)


def _program_for(goals) -> str:
    if isinstance(goals, str):
        goals = [goals]
    text = " ".join(str(g) for g in (goals or [])).lower()
    for program, keywords in GOAL_KEYWORDS:
        if any(k in text for k in keywords):
            return program
    return "Condicionamento"


def offline_workouts(level: Optional[str] = None, goals=None) -> list[dict]:
    key = (level or "iniciante").strip().lower()
    key = LEVEL_ALIASES.get(key, key)
    intensity = INTENSITY.get(key, INTENSITY["iniciante"])
    difficulty = key if key in INTENSITY else "iniciante"

    workouts = []
    for name, description, exercises in OFFLINE_PROGRAMS[_program_for(goals)]:
        workouts.append(
            {
                "name": name,
                "description": description.format(**intensity),
                "exercises": [
                    {
                        "name": ex_name,
                        "sets": intensity["sets"],
                        "reps": reps or intensity["reps"],
                        "rest": intensity["rest"],
                        "muscles": muscles,
                        "difficulty": difficulty,
                        "execution": "Mantenha a postura correta durante todo o movimento.",
                    }
                    for ex_name, reps, muscles in exercises
                ],
            }
        )
    return workouts


# ------------------------------
# Chat
# ------------------------------
CHAT_RULES = """Regras:
1. Suas respostas devem ser concisas, práticas e fáceis de entender.
2. Se perguntado sobre um exercício específico, explique a técnica correta, os músculos trabalhados e possíveis variações ou substituições.
3. Se o usuário mencionar problemas físicos ou lesões, recomende adaptações seguras ou exercícios alternativos.
4. Mantenha um tom motivador, incentivando o usuário a seguir seu programa de treinamento.
5. Não sugira mudanças radicais no programa de treinamento gerado.
6. Se perguntado sobre nutrição, ofereça apenas conselhos gerais e evite prescrições dietéticas específicas.
7. Quando não souber responder com certeza, admita e sugira consultar um profissional.
8. Responda SEMPRE em português do Brasil."""


def build_chat_messages(message: str, workout: Any, assessment=None, history=None) -> list[dict]:
    system = (
        "Você é um assistente especializado em fitness e exercícios físicos, focado em ajudar "
        "pessoas com seus treinos personalizados.\n\n"
        "Aqui está o treino atual do usuário, sobre o qual ele irá fazer perguntas:\n"
        f"{json.dumps(workout, ensure_ascii=False, indent=2)}\n"
    )
    if assessment is not None:
        system += (
            "\nInformações sobre o perfil físico do usuário:\n"
            f"- Altura: {_fmt(assessment.height)}cm\n"
            f"- Peso: {_fmt(assessment.weight)}kg\n"
            f"- Idade: {assessment.age} anos\n"
            f"- Nível de experiência: {assessment.experience_level}\n"
            f"- Objetivo: {assessment.fitness_goal}\n"
            f"- Limitações de saúde: {_join(assessment.health_limitations, 'Nenhuma')}\n"
        )
    system += "\n" + CHAT_RULES

    messages = [{"role": "system", "content": system}]
    for item in history or []:
        if not isinstance(item, dict):
            continue
        role = {"user": "user", "assistant": "assistant"}.get(item.get("type") or item.get("role"))
        if role and item.get("content"):
            messages.append({"role": role, "content": str(item["content"])})
    messages.append({"role": "user", "content": message})
    return messages
