"""
CSV and Excel renditions of a contest's ranked results.
"""
import csv
import io
import json
import logging
import re
from datetime import datetime
from typing import Dict, List, Optional

import pandas as pd

from app.core.scoring.schemas import ContestView, LeaderboardEntry, ScoreSheet

logger = logging.getLogger(__name__)

CSV_COLUMNS = [
    "Rank",
    "Name",
    "Email",
    "Score",
    "Total Questions",
    "Percentage",
    "Time Taken",
    "Submitted At",
]
SUMMARY_COLUMNS = [
    "Rank",
    "Name",
    "Email",
    "Score",
    "Correct",
    "Attempted",
    "Total Questions",
    "Negative Marks",
    "Percentage",
    "Accuracy",
    "Time Taken (min)",
    "Violations",
    "Submitted At",
]
DETAIL_COLUMNS = [
    "Question Number",
    "Question",
    "Options",
    "User Answer",
    "Correct Answer",
    "Status",
    "Negative Marks",
]
QUESTION_COLUMNS = ["Question Number", "Question", "Options", "Correct Answer", "Level", "Category", "Score"]
MAX_SHEET_NAME = 31


def _format_timestamp(value: Optional[datetime]) -> str:
    return value.isoformat() if value else "Not submitted"


def export_filename(contest: ContestView, suffix: str, extension: str) -> str:
    safe_title = re.sub(r"[^A-Za-z0-9_-]+", "_", contest.title).strip("_") or f"contest_{contest.id}"
    return f"{safe_title}_{suffix}_{datetime.now().strftime('%Y-%m-%d')}.{extension}"


def build_results_csv(leaderboard: List[LeaderboardEntry]) -> str:
    rows = [
        {
            "Rank": entry.rank,
            "Name": entry.user_name,
            "Email": entry.user_email,
            "Score": entry.final_score,
            "Total Questions": entry.total_questions,
            "Percentage": f"{entry.percentage}%",
            "Time Taken": f"{entry.time_taken} minutes",
            "Submitted At": _format_timestamp(entry.submitted_at),
        }
        for entry in leaderboard
    ]
    df = pd.DataFrame(rows, columns=CSV_COLUMNS)
    return df.to_csv(index=False, quoting=csv.QUOTE_ALL)


def participant_sheet_name(entry: LeaderboardEntry) -> str:
    """``<rank>_<name>`` with sheet-unsafe characters replaced, max 31 chars."""
    name = re.sub(r"[^A-Za-z0-9]", "_", entry.user_name)
    return f"{entry.rank}_{name}"[:MAX_SHEET_NAME]


def _status(is_attempted: bool, is_correct: bool) -> str:
    if not is_attempted:
        return "Not answered"
    return "Correct" if is_correct else "Incorrect"


def _set_widths(worksheet, widths: List[int]) -> None:
    for index, width in enumerate(widths):
        letter = chr(ord("A") + index)
        worksheet.column_dimensions[letter].width = width


def build_results_workbook(
    contest: ContestView,
    leaderboard: List[LeaderboardEntry],
    sheets: Dict[int, ScoreSheet],
) -> bytes:
    """
    Workbook with a Summary sheet, one sheet per participant and a Questions sheet.

    ``sheets`` maps participation id to that participant's score sheet.
    """
    summary = pd.DataFrame(
        [
            {
                "Rank": entry.rank,
                "Name": entry.user_name,
                "Email": entry.user_email,
                "Score": entry.final_score,
                "Correct": entry.correct,
                "Attempted": entry.attempted,
                "Total Questions": entry.total_questions,
                "Negative Marks": entry.negative_marks,
                "Percentage": entry.percentage,
                "Accuracy": entry.accuracy,
                "Time Taken (min)": entry.time_taken,
                "Violations": entry.violations,
                "Submitted At": _format_timestamp(entry.submitted_at),
            }
            for entry in leaderboard
        ],
        columns=SUMMARY_COLUMNS,
    )

    buffer = io.BytesIO()
    with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
        summary.to_excel(writer, index=False, sheet_name="Summary")
        _set_widths(writer.sheets["Summary"], [8, 25, 30, 10, 10, 10, 15, 15, 12, 12, 16, 12, 28])

        for entry in leaderboard:
            sheet = sheets.get(entry.participation_id)
            if sheet is None:
                continue
            detail = pd.DataFrame(
                [
                    {
                        "Question Number": number,
                        "Question": result.question,
                        "Options": json.dumps(result.options),
                        "User Answer": result.user_answer if result.is_attempted else "Not answered",
                        "Correct Answer": result.correct_answer,
                        "Status": _status(result.is_attempted, result.is_correct),
                        "Negative Marks": result.negative_marks,
                    }
                    for number, result in enumerate(sheet.question_results, start=1)
                ],
                columns=DETAIL_COLUMNS,
            )
            name = participant_sheet_name(entry)
            detail.to_excel(writer, index=False, sheet_name=name)
            _set_widths(writer.sheets[name], [16, 80, 50, 30, 30, 14, 15])

        questions = pd.DataFrame(
            [
                {
                    "Question Number": number,
                    "Question": question.question,
                    "Options": json.dumps(question.options),
                    "Correct Answer": ", ".join(question.correct_answers),
                    "Level": question.level or "",
                    "Category": question.category or "",
                    "Score": question.score,
                }
                for number, question in enumerate(contest.questions, start=1)
            ],
            columns=QUESTION_COLUMNS,
        )
        questions.to_excel(writer, index=False, sheet_name="Questions")
        _set_widths(writer.sheets["Questions"], [16, 80, 50, 30, 10, 20, 8])

    logger.info(f"Built results workbook for contest {contest.id} with {len(leaderboard)} participants")
    return buffer.getvalue()
