"""
CourseGate - Course Player

Streamlit front end over CourseService and PlayerSession. All gating,
scoring and certification decisions come from the coursegate package;
this file only draws them.

Usage:
    streamlit run app.py
"""

import streamlit as st

from coursegate.classroom import (
    CourseService,
    Completed,
    ElapsedTimeSignal,
    Locked,
    PlayerSession,
    ReadyToFinish,
    ReportedProgressSignal,
    TakingQuiz,
    Viewing,
)
from coursegate.config import load_settings, setup_logging
from coursegate.errors import CourseGateError, GuardViolation, PersistenceFailure
from coursegate.schemas import LessonStatus, QuestionType
from coursegate.viewer import get_quiz_css, render_quiz_question, render_quiz_result


# -----------------------------------------------------------------------------
# Configuration
# -----------------------------------------------------------------------------

st.set_page_config(
    page_title="CourseGate",
    page_icon="🎓",
    layout="wide",
    initial_sidebar_state="expanded",
)


# -----------------------------------------------------------------------------
# Session State Initialization
# -----------------------------------------------------------------------------

def init_session_state():
    """Initialize session state variables."""
    if "settings" not in st.session_state:
        st.session_state.settings = load_settings()
        setup_logging(st.session_state.settings.log_level)

    if "service" not in st.session_state:
        if st.session_state.settings.content_db.exists():
            st.session_state.service = CourseService.from_settings(st.session_state.settings)
        else:
            st.session_state.service = None

    if "player" not in st.session_state:
        st.session_state.player = None

    if "last_result" not in st.session_state:
        st.session_state.last_result = None

    if "view_mode" not in st.session_state:
        st.session_state.view_mode = "course"  # course, certificates


def get_player(learner_id: str, course_id: str) -> PlayerSession:
    """Reuse the open session for this learner and course, or start a new one."""
    player = st.session_state.player
    if player is None or player.learner_id != learner_id or player.course.id != course_id:
        player = st.session_state.service.open_session(learner_id, course_id)
        st.session_state.player = player
        st.session_state.last_result = None
    return player


# -----------------------------------------------------------------------------
# Sidebar: Course Outline
# -----------------------------------------------------------------------------

def render_sidebar() -> tuple[str, str] | None:
    """Render learner/course pickers and the outline. Returns (learner_id, course_id)."""
    st.sidebar.title("🎓 CourseGate")

    service = st.session_state.service
    if not service:
        st.sidebar.error("Content database not found. Compile a course first.")
        return None

    learner_id = st.sidebar.text_input("Learner", value="learner-1")
    course_ids = service.loader.get_course_ids()
    if not learner_id or not course_ids:
        st.sidebar.info("No courses compiled yet.")
        return None
    course_id = st.sidebar.selectbox("Course", course_ids)

    view_mode = st.sidebar.radio(
        "View",
        ["Course", "Certificates"],
        index=["course", "certificates"].index(st.session_state.view_mode),
        horizontal=True,
        label_visibility="collapsed",
    )
    st.session_state.view_mode = view_mode.lower()

    summary = service.get_progress_summary(learner_id, course_id)
    st.sidebar.markdown(
        f"**Progress:** {summary.completed_lessons}/{summary.total_lessons} lessons "
        f"({summary.completion_percent}%)"
    )
    st.sidebar.progress(summary.completion_percent / 100)

    if st.session_state.view_mode == "course":
        render_outline(get_player(learner_id, course_id))
    return learner_id, course_id


def render_outline(player: PlayerSession):
    st.sidebar.divider()
    for nav_section in player.navigation_tree():
        section = nav_section.section
        label = f"**{section.title}** ({nav_section.completed_count}/{nav_section.total_count})"
        with st.sidebar.expander(label, expanded=any(nl.is_current for nl in nav_section.lessons)):
            for nav_lesson in nav_section.lessons:
                lesson = nav_lesson.lesson
                col1, col2 = st.columns([1, 9])
                with col1:
                    st.markdown(player.get_status_indicator(lesson.id))
                with col2:
                    if st.button(
                        lesson.title[:30] + "..." if len(lesson.title) > 30 else lesson.title,
                        key=f"lesson_{lesson.id}",
                        disabled=nav_lesson.status == LessonStatus.LOCKED,
                        use_container_width=True,
                    ):
                        transition = player.select_lesson(lesson.id)
                        if transition.rejected:
                            st.sidebar.warning("Complete the previous lessons first.")
                        else:
                            st.session_state.last_result = None
                            st.rerun()


# -----------------------------------------------------------------------------
# Main Content: Player
# -----------------------------------------------------------------------------

def render_player(player: PlayerSession):
    state = player.state

    if isinstance(state, Completed):
        st.balloons()
        st.success(f"Course completed! Certificate {state.certificate.certificate_number}")
        return

    if isinstance(state, Locked):
        st.warning("This lesson is locked. Complete the previous lessons first.")
        return

    lesson = player.current_lesson
    st.title(lesson.title)
    if lesson.duration_minutes:
        st.caption(f"{lesson.duration_minutes} min")

    if isinstance(state, Viewing):
        render_lesson_content(player)
    elif isinstance(state, TakingQuiz):
        render_quiz(player)
    elif isinstance(state, ReadyToFinish):
        render_finish(player)


def render_lesson_content(player: PlayerSession):
    lesson = player.current_lesson
    if lesson.media:
        st.info(f"Media: {lesson.media.provider.value} ({lesson.media.ref})")
        signal = player.consumption_signal(lesson.id)
        if isinstance(signal, ReportedProgressSignal):
            percent = st.slider("Watched (%)", 0, 100, int(signal.watched_percent(lesson.id)))
            signal.report(lesson.id, percent)
        elif isinstance(signal, ElapsedTimeSignal):
            st.progress(signal.watch_percent(lesson) / 100)
    if lesson.content:
        st.markdown(lesson.content)

    st.divider()
    if st.button("Mark lesson as complete", type="primary", use_container_width=True):
        try:
            player.mark_lesson_complete()
        except GuardViolation as e:
            st.warning(str(e))
        except PersistenceFailure:
            st.error("Could not save progress, please retry.")
        else:
            st.rerun()


def render_quiz(player: PlayerSession):
    quiz = player.current_lesson.quiz
    st.markdown(get_quiz_css(), unsafe_allow_html=True)

    result = st.session_state.last_result
    if result is not None and not result.passed:
        st.markdown(render_quiz_result(quiz, result), unsafe_allow_html=True)
        st.warning("You must pass this quiz to continue. Try again.")

    questions = quiz.ordered_questions()
    for idx, question in enumerate(questions):
        st.markdown(render_quiz_question(question, idx, len(questions)), unsafe_allow_html=True)
        key = f"answer_{quiz.id}_{question.id}"
        if question.question_type == QuestionType.MULTIPLE_CHOICE:
            answer = st.multiselect("Answer", question.options, key=key, label_visibility="collapsed")
        else:
            answer = st.radio("Answer", question.options, index=None, key=key, label_visibility="collapsed")
        player.record_answer(question.id, answer)

    if st.button("Submit quiz", type="primary", use_container_width=True):
        try:
            transition = player.submit_quiz()
        except CourseGateError as e:
            st.error(str(e))
            return
        st.session_state.last_result = transition.quiz_result
        for question in questions:
            st.session_state.pop(f"answer_{quiz.id}_{question.id}", None)
        if transition.needs_confirmation:
            st.toast(f"Passed with {transition.quiz_result.score}%!")
        st.rerun()


def render_finish(player: PlayerSession):
    st.success("You have completed every lesson.")
    if st.button("Finish course", type="primary", use_container_width=True):
        try:
            player.finish_course()
        except GuardViolation as e:
            st.warning(str(e))
        except PersistenceFailure:
            st.error("Could not create the certificate, please retry.")
        else:
            st.rerun()


# -----------------------------------------------------------------------------
# Certificates View
# -----------------------------------------------------------------------------

def render_certificates_view(learner_id: str):
    service = st.session_state.service
    st.title("Certificates")

    certificates = service.list_certificates(learner_id)
    if not certificates:
        st.info("Finish a course to earn a certificate.")
    for certificate in certificates:
        st.markdown(
            f"**{certificate.course_id}** - `{certificate.certificate_number}` "
            f"(issued {certificate.issued_at:%Y-%m-%d})"
        )

    st.divider()
    number = st.text_input("Verify a certificate number")
    if number:
        found = service.verify_certificate(number.strip())
        if found:
            st.success(f"Valid: issued to {found.learner_id} for {found.course_id}")
        else:
            st.error("Certificate not found")


# -----------------------------------------------------------------------------
# Main App
# -----------------------------------------------------------------------------

def main():
    """Main application entry point."""
    init_session_state()
    selection = render_sidebar()
    if selection is None:
        return

    learner_id, course_id = selection
    if st.session_state.view_mode == "course":
        render_player(get_player(learner_id, course_id))
    else:
        render_certificates_view(learner_id)


if __name__ == "__main__":
    main()
