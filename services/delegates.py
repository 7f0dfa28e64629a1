"""
AI delegates.

The reconciler and the summary requester only see the two small
interfaces below, so tests substitute deterministic stubs. The Gemini
implementation sends the prompts the faculty-facing features rely on and
maps transport failures onto the DelegateUnavailable/DelegateTimeout
errors. Recognition responses are returned as decoded dicts; interpreting
them is the reconciler's job.
"""
import json
import logging
from abc import ABC, abstractmethod
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass, field
from typing import List

import google.generativeai as genai
from google.api_core import exceptions as google_exceptions

from errors import DelegateTimeout, DelegateUnavailable, MalformedDelegateResponse
from utils.image_utils import parse_data_uri

logger = logging.getLogger(__name__)


@dataclass
class StudentProfile:
    roll_number: str
    profile_photo_url: str


@dataclass
class RecognitionRequest:
    class_photo: str  # data URI
    student_profiles: List[StudentProfile] = field(default_factory=list)


class RecognitionDelegate(ABC):

    @abstractmethod
    def recognize(self, request: RecognitionRequest) -> dict:
        """
        Returns {"presentStudents": [{"rollNumber": str, "box": {...}}, ...],
                 "totalFacesDetected": int}
        """

    @abstractmethod
    def count_faces(self, photo: str) -> dict:
        """Returns {"faceCount": int}."""


class SummaryDelegate(ABC):

    @abstractmethod
    def summarize(self, class_code: str, start_date: str, end_date: str, attendance_data: str) -> dict:
        """Returns {"summary": str}."""


def call_with_timeout(executor, timeout, fn, *args):
    """Run a delegate call on executor and wait at most timeout seconds."""
    future = executor.submit(fn, *args)
    try:
        return future.result(timeout=timeout)
    except FutureTimeoutError:
        future.cancel()
        logger.warning("Delegate call %s timed out after %ss", getattr(fn, "__name__", fn), timeout)
        raise DelegateTimeout(f"AI service timed out after {timeout:g}s")


# -------------------- Gemini --------------------

RECOGNITION_PROMPT = """You are an AI expert in face recognition. Your task is to identify which students from a provided list are present in a classroom photograph and provide the bounding box for each recognized face.

You will be given:
1.  A main classroom photograph.
2.  A list of student profiles, each with a roll number and a reference profile photo.

Your process:
1.  Analyze the main classroom photograph to detect all visible human faces. Store the total count in 'totalFacesDetected'.
2.  For each detected face, compare it against all the student profile photos provided.
3.  If a face in the classroom photo is a confident match for a student's profile photo, add that student to 'presentStudents'.
4.  For each matched student, provide the bounding box of their face in the classroom photo as fractional values between 0 and 1 relative to the image size, with the top-left corner at (x, y).
5.  A student should only be marked as present if their face is clearly visible and identifiable.

Respond with JSON only:
{"totalFacesDetected": <int>, "presentStudents": [{"rollNumber": "<roll number>", "box": {"x": <float>, "y": <float>, "width": <float>, "height": <float>}}]}

Classroom Photo:"""

FACE_COUNT_PROMPT = """You are an AI model that specializes in computer vision. Your task is to analyze the provided image and count the number of human faces present.

Only count clear, visible human faces. Do not count faces that are mostly obscured or out of focus.

Respond with JSON only: {"faceCount": <int>}

Image to analyze:"""

SUMMARY_PROMPT = """You are an AI assistant that generates a summary of student attendance for a specific class and date range.

Your goal is to quickly identify students with poor attendance so the faculty can provide intervention.

Here is the class code: {class_code}
Here is the start date: {start_date}
Here is the end date: {end_date}
Here is the attendance data (JSON format): {attendance_data}

Please provide a concise summary that highlights students with poor attendance records. Focus on providing actionable insights for the faculty.

Respond with JSON only: {{"summary": "<summary text>"}}"""


def _image_part(data_uri):
    mime_type, raw = parse_data_uri(data_uri)
    return {"mime_type": mime_type, "data": raw}


class GeminiDelegate(RecognitionDelegate, SummaryDelegate):

    def __init__(self, api_key, model_name="gemini-1.5-flash", timeout=30.0):
        self.model_name = model_name
        self.timeout = timeout
        self._model = None
        if api_key:
            genai.configure(api_key=api_key)
            self._model = genai.GenerativeModel(model_name)
        else:
            logger.warning("GEMINI_API_KEY not set. AI attendance features are disabled.")

    def _generate_json(self, contents):
        if self._model is None:
            raise DelegateUnavailable("AI service is not configured")
        try:
            response = self._model.generate_content(
                contents,
                generation_config={"response_mime_type": "application/json"},
                request_options={"timeout": self.timeout},
            )
        except google_exceptions.DeadlineExceeded as e:
            raise DelegateTimeout(f"AI service timed out: {e}") from e
        except google_exceptions.GoogleAPIError as e:
            logger.error("Gemini call failed: %s", e)
            raise DelegateUnavailable(f"AI service unavailable: {e}") from e

        try:
            payload = json.loads(response.text)
        except ValueError as e:
            # response.text raises ValueError as well when the candidate was blocked
            raise MalformedDelegateResponse(f"AI service returned invalid JSON: {e}") from e
        if not isinstance(payload, dict):
            raise MalformedDelegateResponse("AI service returned a non-object response")
        return payload

    def recognize(self, request):
        contents = [RECOGNITION_PROMPT, _image_part(request.class_photo), "Student Roster:"]
        for profile in request.student_profiles:
            contents.append(f"- Student Roll Number: {profile.roll_number}\n  Profile Photo:")
            contents.append(_image_part(profile.profile_photo_url))
        logger.info("Gemini recognition request with %d profiles", len(request.student_profiles))
        return self._generate_json(contents)

    def count_faces(self, photo):
        return self._generate_json([FACE_COUNT_PROMPT, _image_part(photo)])

    def summarize(self, class_code, start_date, end_date, attendance_data):
        prompt = SUMMARY_PROMPT.format(class_code=class_code, start_date=start_date,
                                       end_date=end_date, attendance_data=attendance_data)
        return self._generate_json(prompt)
