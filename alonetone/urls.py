from django.urls import path

from . import moderation, views

urlpatterns = [
    path('', views.HomeView.as_view(), name='home'),
    path('upload/', views.UploadStatusView.as_view(), name='upload'),
    path('comments/', views.CommentsView.as_view(), name='comments'),
    path('comments/<uuid:id>/spam/', moderation.CommentSpamView.as_view(), name='comment-spam'),
    path('comments/<uuid:id>/unspam/', moderation.CommentUnspamView.as_view(), name='comment-unspam'),
    path('comments/<uuid:id>/destroy/', moderation.CommentDestroyView.as_view(), name='comment-destroy'),
    path('moderation/users/<str:login>/spam/', moderation.ModerationUserSpamView.as_view(), name='moderation-user-spam'),
    path('moderation/users/<str:login>/delete/', moderation.ModerationUserDeleteView.as_view(), name='moderation-user-delete'),
    path('moderation/users/<str:login>/restore/', moderation.ModerationUserRestoreView.as_view(), name='moderation-user-restore'),
    path('<str:login>/tracks/', views.UserTracksView.as_view(), name='user-tracks'),
    path('<str:login>/tracks/<slug:permalink>.mp3', views.TrackStreamView.as_view(), name='track-stream'),
    path('<str:login>/tracks/<slug:permalink>/', views.TrackDetailView.as_view(), name='track-detail'),
    path('<str:login>/tracks/<slug:permalink>/download/', views.TrackDownloadView.as_view(), name='track-download'),
    path('<str:login>/tracks/<slug:permalink>/spam/', moderation.TrackSpamView.as_view(), name='track-spam'),
    path('<str:login>/tracks/<slug:permalink>/unspam/', moderation.TrackUnspamView.as_view(), name='track-unspam'),
    path('<str:login>/playlists/', views.UserPlaylistsView.as_view(), name='user-playlists'),
    path('<str:login>/playlists/sort/', views.PlaylistSortView.as_view(), name='user-playlists-sort'),
    path('<str:login>/playlists/<slug:permalink>/', views.PlaylistDetailView.as_view(), name='playlist-detail'),
    path('<str:login>/playlists/<slug:permalink>/add_track/', views.PlaylistAddTrackView.as_view(), name='playlist-add-track'),
    path('<str:login>/playlists/<slug:permalink>/remove_track/', views.PlaylistRemoveTrackView.as_view(), name='playlist-remove-track'),
    path('<str:login>/playlists/<slug:permalink>/sort_tracks/', views.PlaylistSortTracksView.as_view(), name='playlist-sort-tracks'),
    path('<str:login>/playlists/<slug:permalink>/attach_pic/', views.PlaylistAttachPicView.as_view(), name='playlist-attach-pic'),
    path('<str:login>/playlists/<slug:permalink>/cover/<str:variant>/', views.PlaylistCoverVariantView.as_view(), name='playlist-cover-variant'),
    path('<str:login>/follow/', views.FollowView.as_view(), name='user-follow'),
    path('<str:login>/comments/', views.UserCommentsView.as_view(), name='user-comments'),
]
