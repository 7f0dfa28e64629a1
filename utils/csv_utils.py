# utils/csv_utils.py
import csv
import io


def attendance_matrix_csv(roster):
    """
    Roster x date matrix: 'Roll Number,Name,<dates...>' then one P/A row per
    student, in roster order. Dates are the sorted union of all histories.
    """
    all_dates = sorted({day for student in roster for day in student.attendance_history})

    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    writer.writerow(["Roll Number", "Name"] + all_dates)
    for student in roster:
        attended = set(student.attendance_history)
        writer.writerow([student.roll_number, student.name] + ["P" if d in attended else "A" for d in all_dates])
    return buf.getvalue()
