BRIEF_SECTIONS = (
    {"num": 1, "key": "brand_overview", "title": "Tổng quan thương hiệu"},
    {"num": 2, "key": "market_analysis", "title": "Phân tích thị trường"},
    {"num": 3, "key": "target_audience", "title": "Đối tượng mục tiêu"},
    {"num": 4, "key": "campaign_objectives", "title": "Mục tiêu chiến dịch"},
    {"num": 5, "key": "key_messages", "title": "Thông điệp chính"},
    {"num": 6, "key": "creative_direction", "title": "Định hướng sáng tạo"},
    {"num": 7, "key": "media_strategy", "title": "Chiến lược truyền thông"},
    {"num": 8, "key": "content_strategy", "title": "Chiến lược nội dung"},
    {"num": 9, "key": "kol_influencer", "title": "KOL/Influencer"},
    {"num": 10, "key": "budget_allocation", "title": "Phân bổ ngân sách"},
    {"num": 11, "key": "timeline", "title": "Timeline"},
    {"num": 12, "key": "kpi_metrics", "title": "KPI & Metrics"},
    {"num": 13, "key": "competitors", "title": "Đối thủ cạnh tranh"},
    {"num": 14, "key": "deliverables", "title": "Sản phẩm bàn giao"},
    {"num": 15, "key": "approval_process", "title": "Quy trình duyệt"},
    {"num": 16, "key": "additional_notes", "title": "Ghi chú bổ sung"},
)

TOTAL_SECTIONS = len(BRIEF_SECTIONS)
