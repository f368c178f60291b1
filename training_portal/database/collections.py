# Collection Names
COLLECTIONS = {
    'users': 'users',
    'sponsors': 'sponsors',
    'trainees': 'trainees',
    'email_verifications': 'email_verifications',
    'generated_ids': 'generated_ids',
    'staff': 'staff',
    'resource_persons': 'resource_persons',
    'staff_registrations': 'staff_registrations',
    'resource_person_registrations': 'resource_person_registrations',
    'content': 'content',
    'trainee_progress': 'trainee_progress',
    'videos': 'videos',
    'files': 'files',
    'announcements': 'announcements',
    'announcement_replies': 'announcement_replies',
    'messages': 'messages',
    'notifications': 'notifications',
    'cbt_questions': 'cbt_questions',
    'cbt_exams': 'cbt_exams',
    'cbt_exam_attempts': 'cbt_exam_attempts',
    'certificates': 'certificates',
    'evaluation_questions': 'evaluation_questions',
    'evaluation_responses': 'evaluation_responses',
    'system_settings': 'system_settings',
    'counters': 'counters',
}

# Collection Structure Documentation
COLLECTION_SCHEMAS = {
    'users': {
        'fields': ['email', 'first_name', 'last_name', 'role', 'status'],
        'required': ['email', 'role'],
        'indexes': ['role', 'email', 'status']
    },
    'sponsors': {
        'fields': ['name', 'description', 'logo_url', 'start_date', 'end_date', 'is_active'],
        'required': ['name'],
        'indexes': ['is_active', 'created_at']
    },
    'trainees': {
        'fields': ['trainee_id', 'tag_number', 'first_name', 'surname', 'middle_name', 'email', 'phone', 'gender',
                   'date_of_birth', 'state', 'lga', 'nationality', 'sponsor_id', 'room_number', 'lecture_venue',
                   'is_active', 'email_verified'],
        'required': ['tag_number', 'first_name', 'surname', 'email', 'sponsor_id'],
        'indexes': ['email', 'tag_number', 'sponsor_id', 'is_active']
    },
    'email_verifications': {
        'fields': ['email', 'code', 'expires_at', 'verified', 'attempts'],
        'required': ['email', 'code', 'expires_at'],
        'indexes': ['expires_at']
    },
    'generated_ids': {
        'fields': ['type', 'status', 'assigned_to', 'assigned_at', 'activated_at', 'freed_at', 'freed_reason',
                   'last_assigned_to', 'last_assigned_at', 'usage_count', 'deactivated_at', 'deactivation_reason'],
        'required': ['type', 'status'],
        'indexes': ['type', 'status', 'assigned_to', 'created_at']
    },
    'staff': {
        'fields': ['generated_id', 'email', 'first_name', 'surname', 'phone', 'department', 'is_active'],
        'required': ['generated_id', 'email'],
        'indexes': ['generated_id', 'email']
    },
    'resource_persons': {
        'fields': ['generated_id', 'email', 'first_name', 'surname', 'phone', 'specialization', 'is_active'],
        'required': ['generated_id', 'email'],
        'indexes': ['generated_id', 'email']
    },
    'staff_registrations': {
        'fields': ['generated_id', 'email', 'first_name', 'surname', 'phone', 'status'],
        'required': ['generated_id', 'email'],
        'indexes': ['generated_id', 'email']
    },
    'resource_person_registrations': {
        'fields': ['generated_id', 'email', 'first_name', 'surname', 'phone', 'status'],
        'required': ['generated_id', 'email'],
        'indexes': ['generated_id', 'email']
    },
    'content': {
        'fields': ['title', 'description', 'type', 'video_id', 'file_id', 'sponsor_id', 'order_index', 'is_active'],
        'required': ['title', 'type'],
        'indexes': ['sponsor_id', 'type', 'is_active', 'order_index']
    },
    'trainee_progress': {
        'fields': ['trainee_id', 'content_id', 'status', 'progress', 'completed_at'],
        'required': ['trainee_id', 'content_id', 'status'],
        'indexes': ['trainee_id', 'content_id', 'status']
    },
    'videos': {
        'fields': ['original_name', 'file_name', 'mime_type', 'size', 'path', 'duration', 'uploaded_by', 'uploaded_at'],
        'required': ['original_name', 'path', 'mime_type'],
        'indexes': ['uploaded_at']
    },
    'files': {
        'fields': ['original_name', 'file_name', 'mime_type', 'size', 'path', 'uploaded_by', 'uploaded_at'],
        'required': ['original_name', 'path', 'mime_type'],
        'indexes': ['uploaded_at']
    },
    'announcements': {
        'fields': ['title', 'message', 'author', 'sponsor_id', 'is_active'],
        'required': ['title', 'message'],
        'indexes': ['sponsor_id', 'is_active', 'created_at']
    },
    'announcement_replies': {
        'fields': ['announcement_id', 'message', 'from_name', 'from_id', 'from_role', 'reply_to_id'],
        'required': ['announcement_id', 'message', 'from_id', 'from_role'],
        'indexes': ['announcement_id', 'created_at']
    },
    'messages': {
        'fields': ['from_id', 'from_name', 'from_email', 'to_id', 'to_name', 'subject', 'message', 'is_read',
                   'message_type', 'priority'],
        'required': ['from_id', 'to_id', 'subject', 'message', 'message_type'],
        'indexes': ['to_id', 'from_id', 'is_read', 'created_at']
    },
    'notifications': {
        'fields': ['user_id', 'type', 'title', 'message', 'announcement_id', 'reply_id', 'message_id', 'from_id',
                   'from_name', 'is_read'],
        'required': ['user_id', 'type', 'title', 'message'],
        'indexes': ['user_id', 'is_read', 'created_at']
    },
    'cbt_questions': {
        'fields': ['exam_id', 'subject', 'topic', 'question', 'question_type', 'options', 'correct_answer', 'points',
                   'order_index', 'difficulty', 'is_active'],
        'required': ['question', 'question_type', 'correct_answer'],
        'indexes': ['exam_id', 'subject', 'is_active', 'order_index']
    },
    'cbt_exams': {
        'fields': ['title', 'description', 'duration', 'total_questions', 'passing_score', 'subjects',
                   'randomize_questions', 'show_results', 'sponsor_id', 'is_active'],
        'required': ['title', 'duration'],
        'indexes': ['is_active', 'sponsor_id', 'created_at']
    },
    'cbt_exam_attempts': {
        'fields': ['exam_id', 'trainee_id', 'trainee_name', 'trainee_email', 'question_ids', 'start_time',
                   'end_time', 'time_spent', 'score', 'total_questions', 'correct_answers', 'wrong_answers',
                   'unanswered', 'is_passed', 'rating', 'answers', 'status'],
        'required': ['exam_id', 'trainee_id', 'status'],
        'indexes': ['exam_id', 'trainee_id', 'status', 'start_time']
    },
    'certificates': {
        'fields': ['trainee_id', 'trainee_name', 'tag_number', 'sponsor_id', 'title', 'score', 'issued_by',
                   'issued_at', 'is_revoked'],
        'required': ['trainee_id', 'title'],
        'indexes': ['trainee_id', 'issued_at']
    },
    'evaluation_questions': {
        'fields': ['question', 'type', 'options', 'is_published', 'created_by'],
        'required': ['question', 'type'],
        'indexes': ['is_published', 'created_at']
    },
    'evaluation_responses': {
        'fields': ['trainee_id', 'trainee_name', 'trainee_email', 'question_id', 'question', 'question_type',
                   'answer', 'submitted_at'],
        'required': ['trainee_id', 'question_id', 'answer'],
        'indexes': ['trainee_id', 'question_id', 'submitted_at']
    },
    'system_settings': {
        'fields': ['key', 'value', 'description'],
        'required': ['key'],
        'indexes': ['key']
    },
}
