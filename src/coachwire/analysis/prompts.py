"""
Analysis Prompts — the text sent on the analyzer's side channel.

Progress scoring, the consent question, consent classification, the
"keep going" follow-up and the summary request. Each builder takes the
transcript snippet (or reason) it needs and returns a plain string.
"""

from __future__ import annotations

from coachwire.analysis.dimensions import DimensionSet

SUMMARY_PROMPT = (
    "今までの会話を基に、今週の振り返りの重要なポイントをまとめてください。"
    "セッションを自然にクロージングに向けてください。"
)

SUMMARY_NOTICE = "セッションのまとめを要求しました。"

DEFAULT_REASON = (
    "進行状況を分析しています。十分なデータが集まるとまとめ提案が表示されます。"
)

ANALYZING_NOTE = "コーチングの進行状況を解析しています..."

CONTINUATION_INSTRUCTIONS = (
    "The client would like to continue exploring before summarizing. "
    "Ask a concise, powerful question that deepens reflection while "
    "maintaining the session language."
)

_GROW_CRITERIA = """- goal: 目標や望む成果が明確化されているか
- reality: 現状の把握、課題や状況の理解が深まっているか
- options: 選択肢や可能性が十分に探索されているか
- will: 具体的な行動やコミットメントが設定されているか"""

_MODE_CRITERIA = """- reflective: 感情や価値観、意味づけを内省しているか
- discovery: 目標・現状・選択肢を探求しているか
- actionable: 具体的な行動と合意づくりに向かっているか
- cognitive: 前提や視点の転換が起きているか"""


def progress_prompt(transcript: str, dimensions: DimensionSet) -> str:
    """Ask for a strict-JSON self-assessment along the dimension set."""
    score_lines = ",\n".join(f'    "{key}": number' for key in dimensions.keys)
    criteria = _GROW_CRITERIA if dimensions.name == "grow" else _MODE_CRITERIA
    model = (
        "GROWモデル（Goal→Reality→Options→Will）"
        if dimensions.name == "grow"
        else "4つのコーチングモード（Reflective / Discovery / Actionable / Cognitive）"
    )
    return (
        '以下はコーチ("Coach")とクライアント("Client")のコーチングセッションの抜粋です。'
        f"{model}に基づき、各項目の進捗を0から1で評価してください。"
        "JSONのみを返し、フォーマットは次のとおりです:\n"
        "{\n"
        '  "scores": {\n'
        f"{score_lines}\n"
        "  },\n"
        '  "current_phase": string,\n'
        '  "summary_ready": boolean,\n'
        '  "reason": string\n'
        "}\n\n"
        f"評価基準:\n{criteria}\n\n"
        "スコアは0から1の範囲で小数点2桁までにし、reasonは日本語で簡潔に記述してください。\n\n"
        f"Transcript:\n{transcript}"
    )


def consent_question(reason: str) -> str:
    """Instructions for the coach to ask whether to wrap up."""
    reason = reason.strip()
    if reason:
        base = f"進行状況の解析結果として「{reason}」と判断しています。"
    else:
        base = "進行状況の解析から、主要なフェーズが十分に探索されたと判断しています。"
    return (
        f"{base} セッションのまとめに移行して良いか、クライアントに丁寧に確認してください。"
        "必ず「そろそろまとめに入りますか？」というフレーズを含め、日本語で短く尋ねてください。"
    )


def consent_classification_prompt(transcript: str, latest_client_text: str) -> str:
    return (
        "あなたはコーチングセッションのモデレーターです。"
        "最新のクライアント発話が「まとめに入る」ことへの同意かどうかを判定してください。"
        "会話の抜粋と最新のクライアント発話が以下にあります。\n\n"
        f"Transcript:\n{transcript}\n\n"
        f"Latest client message:\n{latest_client_text}\n\n"
        "JSONのみで回答し、次のフォーマットを厳守してください:\n"
        "{\n"
        '  "decision": "accept" | "decline" | "uncertain",\n'
        '  "confidence": number,\n'
        '  "reason": string\n'
        "}\n\n"
        '"accept"はまとめへの移行に同意、"decline"は拒否または保留、'
        '判断不能の場合は"uncertain"としてください。reasonは日本語で短く記述してください。'
    )


def closure_suggestion(reason: str) -> str:
    """Banner text shown while consent is being negotiated."""
    prompt = reason.strip() or "主要フェーズを概ね完了しました。"
    return f"{prompt}\nセッションをまとめに移行しますか？"
