from .base import Base

# Accounts and catalog
from .user import User
from .category import Category
from .course import Course, CourseMaterial

# Learning activity
from .enrollment import Enrollment
from .online_class import OnlineClass, ClassAttendance
from .chat_message import ChatMessage
from .quiz import Quiz, QuizQuestion, QuizOption, QuizAttempt
from .video_progress import VideoProgress
from .notification import Notification
