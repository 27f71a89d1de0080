from __future__ import annotations

from ..models.habit import HabitEntry, HabitTrackingConfig

CRISIS_RESPONSE = (
    "If you or someone you know is in crisis, please reach out:\n\n"
    "988 Suicide & Crisis Lifeline: Call or text 988\n"
    "Crisis Text Line: Text HOME to 741741\n"
    "Emergency: Call 911\n\n"
    "You are not alone. These services are free, confidential, and available 24/7."
)


def format_number(value: float) -> str:
    """2.0 -> "2", 2.5 -> "2.5"."""
    if float(value).is_integer():
        return str(int(value))
    return f"{value:.2f}".rstrip("0").rstrip(".")


def followup_question(config: HabitTrackingConfig) -> str:
    if config.is_metric:
        unit = config.metric_unit or "units"
        return f'How many {unit} for "{config.habit_name}" today? Reply with a number'
    return f'Did you complete "{config.habit_name}" today? Reply Y or N'


def scheduled_followup_message(config: HabitTrackingConfig, first_name: str) -> str:
    return f"Hi {first_name}! {followup_question(config)}"


def confirmation(config: HabitTrackingConfig, entry: HabitEntry, first_name: str) -> str:
    if not config.is_metric:
        if entry.completed:
            return f'Great job, {first_name}! Logged "{config.habit_name}" as complete for today.'
        return f'Got it, {first_name}. "{config.habit_name}" marked as not done today. Tomorrow\'s a new day!'

    unit = config.metric_unit or "units"
    value = entry.metric_value or 0.0
    message = f'Logged {format_number(value)} {unit} for "{config.habit_name}". '
    target = config.metric_target
    if target and value >= target:
        message += f"You hit your target! Great job, {first_name}!"
    elif target:
        message += f"{format_number(target - value)} more to hit your daily goal of {format_number(target)}."
    else:
        message += f"Keep it up, {first_name}!"
    return message


def help_message(support_email: str) -> str:
    return f"Summit Health: For help, email {support_email}. Reply STOP to unsubscribe."


def reprompt(question: str) -> str:
    return f"Sorry, I didn't catch that. {question}"
